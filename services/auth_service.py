from typing import Iterable, Optional

from database.models import User

PIN_MIN_LENGTH = 4
PIN_MAX_LENGTH = 12


class AuthService:
    @staticmethod
    def validate_pin(pin: str) -> str:
        pin = (pin or "").strip()
        if not (pin.isascii() and pin.isdigit()):
            raise ValueError("PIN must contain digits only")
        if not PIN_MIN_LENGTH <= len(pin) <= PIN_MAX_LENGTH:
            raise ValueError(f"PIN must be {PIN_MIN_LENGTH} to {PIN_MAX_LENGTH} digits")
        return pin

    @staticmethod
    def authenticate(users: Iterable[User], pin: str) -> Optional[User]:
        """
        Finds the staff account for a PIN. PINs are stored and compared in
        plain text; there is no lockout or attempt counting.
        """
        if not pin:
            return None
        for user in users:
            if user.pin == pin:
                return user
        return None
