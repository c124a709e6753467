from app.salesops import create_app

app = create_app()
