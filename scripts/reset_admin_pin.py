import sys
import os

# Add parent directory to path to allow importing modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database.session import load_settings, build_engine
from database.local_store import LocalMirrorStore
from database.models import User, Role
from services.auth_service import AuthService
from services.gateway import DataGateway

DEFAULT_ADMIN_ID = "admin-1"


def reset_admin_pin(gateway: DataGateway, pin: str = "1234") -> User:
    pin = AuthService.validate_pin(pin)

    print("Searching for admin user...")
    users = gateway.get_users().data
    admin = next((u for u in users if u.role == Role.ADMIN), None)

    if admin:
        print(f"Found existing admin user (ID: {admin.id}). Updating PIN...")
        admin.pin = pin
    else:
        print("Admin user not found. Creating new one...")
        admin = User(id=DEFAULT_ADMIN_ID, name="System Admin", pin=pin, role=Role.ADMIN)

    # Another account holding the same PIN would shadow the admin at login
    clash = [u for u in users if u.pin == pin and u.id != admin.id]
    if clash:
        raise ValueError(f"PIN already used by {clash[0].name}, pick another one")

    gateway.save_user(admin)
    return admin


if __name__ == "__main__":
    settings = load_settings()
    gateway = DataGateway(LocalMirrorStore(settings.local_store_path), build_engine(settings))
    new_pin = sys.argv[1] if len(sys.argv) > 1 else "1234"
    reset_admin_pin(gateway, new_pin)
    print(f"SUCCESS: Admin PIN reset to '{new_pin}'")
