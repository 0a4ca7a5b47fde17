import asyncio

from marble_race.world_engine import run_world_engine


def main():
    try:
        asyncio.run(run_world_engine())
    except KeyboardInterrupt:
        print("Marble race stopped by user.")


if __name__ == "__main__":
    main()
