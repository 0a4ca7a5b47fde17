from marble_race.balance_store import BALANCE_KEY, STARTING_GEMS
from marble_race.database import queries as marble_queries
from marble_race.database.connection import get_db_connection


def initialize_database(reset_balance=False):
    """
    Creates the 'marble' schema and the key/value table the balance lives in.
    With reset_balance=True the stored balance is set back to the starting amount.
    """
    conn = None
    try:
        conn = get_db_connection()
        if conn is None:
            print("Error: could not get a database connection.")
            return False
        with conn.cursor() as cur:
            print("Creating 'marble' schema (if missing)...")
            cur.execute("CREATE SCHEMA IF NOT EXISTS marble;")
        conn.commit()
    except Exception as e:
        if conn:
            conn.rollback()
            print("An error occurred. Transaction rolled back.")
        print(f"Error details: {e}")
        return False
    finally:
        if conn:
            conn.close()

    if not marble_queries.ensure_kv_table():
        return False
    print(f"'{marble_queries.KV_TABLE}' table is ready.")

    if reset_balance:
        marble_queries.set_stored_value(BALANCE_KEY, str(STARTING_GEMS))
        print(f"Balance reset to {STARTING_GEMS} gems.")
    return True


if __name__ == '__main__':
    response = input("Reset the stored balance as well? (y/n): ")
    initialize_database(reset_balance=response.lower() == 'y')
