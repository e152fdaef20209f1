import sys
import os

# Add parent directory to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database.session import load_settings, build_engine
from database.local_store import LocalMirrorStore
from services.gateway import COLLECTIONS, DataGateway


def collection_status(gateway: DataGateway) -> dict:
    """Row count and origin for every collection."""
    status = {}
    for name in COLLECTIONS:
        result = gateway.list(name)
        status[name] = {"source": result.source.value, "rows": len(result.data)}
    return status


if __name__ == "__main__":
    settings = load_settings()
    engine = build_engine(settings)
    gateway = DataGateway(LocalMirrorStore(settings.local_store_path), engine)

    print(f" Local mirror: {settings.local_store_path}")
    print(f" Remote backend: {'configured' if engine is not None else 'not configured'}")
    for name, info in collection_status(gateway).items():
        print(f"Table '{name}': {info['rows']} rows (from {info['source']})")
