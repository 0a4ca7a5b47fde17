import os
import psycopg2
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

DB_HOST = os.getenv('DB_HOST')
DB_NAME = os.getenv('DB_NAME')
DB_USER = os.getenv('DB_USER')
DB_PASS = os.getenv('DB_PASSWORD')
DB_PORT = os.getenv('DB_PORT', 5432)

def get_db_connection():
    """
    Establishes and returns a new database connection with the
    'marble' schema first on the search path.
    Returns None when the server cannot be reached.
    """
    try:
        conn = psycopg2.connect(
            dbname=DB_NAME,
            user=DB_USER,
            password=DB_PASS,
            host=DB_HOST,
            port=DB_PORT,
            options="-c search_path=marble,public -c timezone=UTC"
        )
        return conn
    except psycopg2.Error as e:
        print(f"Error: Could not connect to the database. {e}")
        return None

if __name__ == '__main__':
    conn = get_db_connection()
    if conn:
        print("Database connection successful!")
        conn.close()
    else:
        print("Database connection failed.")
