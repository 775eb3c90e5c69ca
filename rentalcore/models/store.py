import atexit
import logging
import os
import pickle
import threading
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Optional

from rentalcore.exceptions import InvalidDateRangeError
from rentalcore.models.booking import DateRange, overlaps
from rentalcore.models.discount import normalize_code
from rentalcore.utils.constants import BOOKING_NUMBER_PREFIX

logger = logging.getLogger(__name__)

# ---- Paths ----
BASE_DIR = Path(__file__).resolve().parents[2]
DEFAULT_DATA_PATH = BASE_DIR / "data.pkl"

TABLES = ("groups", "vehicles", "locations", "extras", "discounts", "bookings")


class Store:
    """
    Catalog, fleet and booking records kept as plain dicts, with atomic pickle
    persistence. Every mutation runs under one re-entrant lock; callers that
    need read-then-write atomicity wrap their work in `transaction()`.

    path=None keeps everything in memory (tests, scripts).
    """
    _inst = None
    _inst_lock = threading.Lock()
    _atexit_registered = False

    def __init__(self, path: Optional[os.PathLike] = None):
        self.path = str(path) if path else None
        self.groups: dict[str, dict] = {}
        self.vehicles: dict[str, dict] = {}
        self.locations: dict[str, dict] = {}
        self.extras: dict[str, dict] = {}
        self.discounts: dict[str, dict] = {}
        self.bookings: dict[str, dict] = {}
        self.booking_seq: dict[int, int] = {}
        self._rw = threading.RLock()

        if self.path:
            logger.info("Store using file: %s", self.path)
            self._load()

    # ---------- Singleton ----------
    @classmethod
    def instance(cls, path: Optional[os.PathLike] = None):
        """Return the global singleton instance of Store."""
        with cls._inst_lock:
            if cls._inst is None:
                cls._inst = Store(path or DEFAULT_DATA_PATH)
                # Automatically save on exit (skipped in test environments)
                if not Store._atexit_registered and os.getenv("APP_ENV") != "test":
                    atexit.register(cls._inst.save)
                    Store._atexit_registered = True
        return cls._inst

    # ---------- Persistence ----------
    def _load(self):
        """Load data from the pickle file, or start empty if unavailable or invalid."""
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, "rb") as f:
                data = pickle.load(f)
        except Exception as e:
            logger.warning("Store load failed (%s); starting empty.", e)
            return

        if isinstance(data, dict):
            for table in TABLES:
                setattr(self, table, data.get(table, {}) or {})
            self.booking_seq = data.get("booking_seq", {}) or {}
            logger.info(
                "Store loaded: groups=%d, vehicles=%d, bookings=%d",
                len(self.groups), len(self.vehicles), len(self.bookings),
            )
        else:
            # Incompatible data format: back up the old file and start empty
            bak = self.path + ".bak"
            os.replace(self.path, bak)
            logger.warning("Incompatible store (%s); backed up to %s. Starting empty.", type(data).__name__, bak)

    def _dump(self):
        """Write the in-memory data to the pickle file safely (atomic replace)."""
        if not self.path:
            return
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        tmp = self.path + ".tmp"
        payload = {table: getattr(self, table) for table in TABLES}
        payload["booking_seq"] = self.booking_seq
        with open(tmp, "wb") as f:
            pickle.dump(payload, f, protocol=pickle.HIGHEST_PROTOCOL)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, self.path)

    def save(self):
        """Thread-safe save method."""
        with self._rw:
            logger.debug("Saving store to %s", self.path)
            self._dump()

    def clear(self):
        with self._rw:
            for table in TABLES:
                getattr(self, table).clear()
            self.booking_seq.clear()
            self._dump()

    @contextmanager
    def transaction(self):
        """
        Hold the store lock for a read-then-write sequence and persist at the end.
        The lock is re-entrant, so store methods may be called inside.
        """
        with self._rw:
            yield self
            self._dump()

    # ---------- generic rows ----------
    def _insert(self, table: str, id_field: str, data: dict, row_id: Optional[str] = None) -> str:
        with self._rw:
            rid = str(row_id or data.get(id_field) or uuid.uuid4())
            row = dict(data)
            row[id_field] = rid
            getattr(self, table)[rid] = row
            self._dump()
            return rid

    # ---------- catalog ----------
    def create_group(self, data: dict) -> str:
        """Create a vehicle group and return its ID."""
        return self._insert("groups", "group_id", data)

    def get_group(self, group_id: str) -> dict | None:
        return self.groups.get(str(group_id))

    def create_location(self, data: dict) -> str:
        return self._insert("locations", "location_id", data)

    def get_location(self, location_id: str) -> dict | None:
        return self.locations.get(str(location_id))

    def create_extra(self, data: dict) -> str:
        return self._insert("extras", "extra_id", data)

    def get_extra(self, extra_id: str) -> dict | None:
        return self.extras.get(str(extra_id))

    # ---------- Vehicles ----------
    def create_vehicle(self, data: dict) -> str:
        """Create a new vehicle record and return its ID."""
        row = {"status": "available", "is_active": True, "current_mileage": 0}
        row.update(data)
        return self._insert("vehicles", "vehicle_id", row)

    def get_vehicle(self, vehicle_id: str) -> dict | None:
        """Get vehicle information by ID."""
        return self.vehicles.get(str(vehicle_id))

    def update_vehicle(self, vehicle_id: str, **updates) -> bool:
        """Update vehicle attributes; return True if updated successfully."""
        with self._rw:
            vid = str(vehicle_id)
            if vid not in self.vehicles:
                return False
            self.vehicles[vid].update({k: v for k, v in updates.items() if v is not None})
            self._dump()
            return True

    def vehicles_in_group(self, group_id: str) -> list[dict]:
        return [v for v in self.vehicles.values() if str(v.get("group_id")) == str(group_id)]

    # ---------- Discounts ----------
    def create_discount(self, data: dict) -> str:
        row = {"current_uses": 0, "max_uses": 0, "is_active": True}
        row.update(data)
        code = normalize_code(row.get("code"))
        if not code:
            raise ValueError("Discount code is required")
        with self._rw:
            if code in self.discounts:
                raise ValueError("Discount code already exists")
            row["code"] = code
            self.discounts[code] = row
            self._dump()
            return code

    def get_discount(self, code: str) -> dict | None:
        return self.discounts.get(normalize_code(code))

    def redeem_discount(self, code: str) -> bool:
        """
        Atomic conditional increment: bump current_uses by exactly one unless
        max_uses (> 0) has been reached. Returns False when nothing was redeemed.
        """
        with self._rw:
            d = self.discounts.get(normalize_code(code))
            if d is None:
                return False
            max_uses = int(d.get("max_uses") or 0)
            current = int(d.get("current_uses") or 0)
            if max_uses > 0 and current >= max_uses:
                return False
            d["current_uses"] = current + 1
            self._dump()
            return True

    # ---------- Bookings ----------
    def next_booking_number(self, year: int) -> str:
        with self._rw:
            seq = self.booking_seq.get(year, 0) + 1
            self.booking_seq[year] = seq
            return f"{BOOKING_NUMBER_PREFIX}-{year}-{seq:05d}"

    def create_booking(self, b: dict) -> str:
        """Create a new booking record."""
        return self._insert("bookings", "booking_id", b, row_id=str(uuid.uuid4()))

    def get_booking(self, booking_id: str) -> dict | None:
        return self.bookings.get(str(booking_id))

    def update_booking(self, booking_id: str, updates: dict) -> bool:
        """Update an existing booking by ID."""
        with self._rw:
            bid = str(booking_id)
            if bid in self.bookings:
                self.bookings[bid].update(updates)
                self._dump()
                return True
            return False

    def bookings_overlapping(self, group_id: str, date_range: DateRange, statuses: Iterable[str]) -> list[dict]:
        """
        Bookings of a group in one of `statuses` whose dates overlap `date_range`
        (pickup_date < requested end and return_date > requested start).
        """
        wanted = set(statuses)
        res = []
        with self._rw:
            for b in self.bookings.values():
                if str(b.get("group_id")) != str(group_id) or b.get("status") not in wanted:
                    continue
                try:
                    other = DateRange.parse(b["pickup_date"], b["return_date"])
                except (KeyError, ValueError, InvalidDateRangeError):
                    logger.warning("Skipping booking %s with malformed dates", b.get("booking_id"))
                    continue
                if overlaps(other, date_range):
                    res.append(b)
        return res


def _store():
    return Store.instance()
