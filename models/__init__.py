from models.car import Car
from models.rental import Rental, RentalStatus, OPEN_STATUSES
from models.user import User, UserRole, ADMIN_ROLES

__all__ = ["Car", "Rental", "RentalStatus", "OPEN_STATUSES", "User", "UserRole", "ADMIN_ROLES"]
