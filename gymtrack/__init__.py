"""GymTrack Lite: membership status, kiosk check-ins and bulk member messaging for small gyms."""
from .app import create_app

__all__ = ['create_app']
