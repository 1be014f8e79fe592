# vat_checker/app.py
# Точка входу для flask run: FLASK_APP=vat_checker.app:app

from . import create_app

app = create_app()

if __name__ == "__main__":
    # Локальний dev-запуск: python -m vat_checker.app
    app.run(host="0.0.0.0", port=app.config.get("PORT", 5000), debug=app.config.get("ENV") == "development")
