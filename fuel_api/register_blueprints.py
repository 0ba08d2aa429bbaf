def register_blueprints(app):
    from fuel_api.movements import movements_bp
    from fuel_api.prices import prices_bp
    from fuel_api.warehouses import warehouses_bp

    app.register_blueprint(warehouses_bp, url_prefix="/api")
    app.register_blueprint(movements_bp, url_prefix="/api")
    app.register_blueprint(prices_bp, url_prefix="/api/prices")
