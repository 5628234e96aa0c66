import sys
from pathlib import Path

# Ensure project root is on sys.path when running as a script
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from storefront.config import load_config
from storefront.db import connect, init_db


def main() -> None:
    cfg = load_config()
    db = connect(cfg)
    init_db(db)
    print(f"DB initialized: {cfg.MONGO_DB_NAME}")


if __name__ == "__main__":
    main()
