from .availability import check_interval, evaluate_slots, find_conflicts
from .cancellation import evaluate_cancellation
from .config import AppConfig, CourtCatalog, EngineSettings, get_default_config_path
from .engine import CancellationReceipt, CourtStatistics, ReservationEngine
from .errors import (
	ConflictError,
	InvalidIntervalError,
	NoOperatingHoursError,
	PolicyViolationError,
	ReservationError,
	ReservationNotFoundError,
	ReservationStateError,
	StorageError,
	UnknownCourtError,
)
from .intervals import contains, duration_minutes, overlaps
from .lanes import layout_lanes
from .models import (
	AvailabilityReason,
	CancellationOutcome,
	Conflict,
	ConflictReport,
	Court,
	CourtStatus,
	LaneAssignment,
	OperatingHourRule,
	OperationResult,
	PaymentStatus,
	RenterInfo,
	Reservation,
	ReservationFilters,
	ReservationStatus,
	Slot,
)
from .slots import generate_slots, quote_price, require_slots
from .yaml_store import ReservationYamlRepository

__all__ = [
	"AppConfig",
	"AvailabilityReason",
	"CancellationOutcome",
	"CancellationReceipt",
	"Conflict",
	"ConflictError",
	"ConflictReport",
	"Court",
	"CourtCatalog",
	"CourtStatistics",
	"CourtStatus",
	"EngineSettings",
	"InvalidIntervalError",
	"LaneAssignment",
	"NoOperatingHoursError",
	"OperatingHourRule",
	"OperationResult",
	"PaymentStatus",
	"PolicyViolationError",
	"RenterInfo",
	"Reservation",
	"ReservationEngine",
	"ReservationError",
	"ReservationFilters",
	"ReservationNotFoundError",
	"ReservationStateError",
	"ReservationStatus",
	"ReservationYamlRepository",
	"Slot",
	"StorageError",
	"UnknownCourtError",
	"check_interval",
	"contains",
	"duration_minutes",
	"evaluate_cancellation",
	"evaluate_slots",
	"find_conflicts",
	"generate_slots",
	"get_default_config_path",
	"layout_lanes",
	"overlaps",
	"quote_price",
	"require_slots",
]
