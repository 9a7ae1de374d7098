from hirehub import create_app

app = create_app()
