from .admission import AdmissionResult, ReservationAdmission
from .booking import TimeRange, calculate_price, conflicting_reservations, has_time_overlap, validate_range
from .distance import DistanceOracle, haversine_meters
from .errors import (
	Forbidden,
	InPast,
	InvalidRange,
	MarketplaceError,
	MissingOrigin,
	NotFound,
	StorageError,
	UpstreamDegraded,
	ValidationError,
)
from .models import Coordinate, Listing, RankedListing, Reservation, User
from .ranking import rank_listings
from .yaml_store import MarketplaceYamlStore, count_completed, find_conflicts

__all__ = [
	"AdmissionResult",
	"ReservationAdmission",
	"TimeRange",
	"calculate_price",
	"conflicting_reservations",
	"has_time_overlap",
	"validate_range",
	"DistanceOracle",
	"haversine_meters",
	"Forbidden",
	"InPast",
	"InvalidRange",
	"MarketplaceError",
	"MissingOrigin",
	"NotFound",
	"StorageError",
	"UpstreamDegraded",
	"ValidationError",
	"Coordinate",
	"Listing",
	"RankedListing",
	"Reservation",
	"User",
	"rank_listings",
	"MarketplaceYamlStore",
	"count_completed",
	"find_conflicts",
]
