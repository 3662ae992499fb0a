from dotenv import load_dotenv

load_dotenv()  # carrega o .env antes de qualquer Settings()
