from paycore import create_app

app = create_app()
