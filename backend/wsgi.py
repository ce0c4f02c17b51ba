from karat import create_app

app = create_app()
