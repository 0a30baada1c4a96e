# Models package
from .vehicle import Company, Vehicle
from .booking import Booking, BookingStatus, CONFIRMED_BOOKING_STATUSES
from .manual_block import ManualBlock
from .external_feed import ExternalFeed, ExternalEvent
from .feed_token import FeedToken

__all__ = [
    "Company", "Vehicle",
    "Booking", "BookingStatus", "CONFIRMED_BOOKING_STATUSES",
    "ManualBlock",
    "ExternalFeed", "ExternalEvent",
    "FeedToken",
]
