from __future__ import annotations

import logging
from typing import Any, List, Optional

from rentalcore.models.booking import DateRange
from rentalcore.models.vehicle import Vehicle, VehicleGroup
from rentalcore.services.common import _store, group_from_dict, overlaps, vehicle_from_dict
from rentalcore.services.rate_service import RateService
from rentalcore.utils.constants import BLOCKING_BOOKING_STATES, DEFAULT_KM_PER_DAY

logger = logging.getLogger(__name__)


def _mileage_order(v: Vehicle):
    return (v.current_mileage, v.vehicle_id)


class AvailabilityService:
    """Which concrete vehicles are free for a group, location and date range."""

    # tests can inject: AvailabilityService.store = fake_store
    store: Any = None

    @staticmethod
    def _get_store(store=None):
        return store or AvailabilityService.store or _store()

    @staticmethod
    def busy_vehicle_ids(group_id: str, date_range: DateRange, *, store=None,
                         exclude_booking_id: Optional[str] = None) -> set[str]:
        """IDs of vehicles held by a confirmed/in-progress booking overlapping `date_range`."""
        st = AvailabilityService._get_store(store)
        busy = set()
        for b in st.bookings_overlapping(group_id, date_range, BLOCKING_BOOKING_STATES):
            if exclude_booking_id and str(b.get("booking_id")) == str(exclude_booking_id):
                continue
            vid = b.get("vehicle_id")
            if vid is None:
                continue
            # the store query is coarse; the overlap rule itself lives in one place
            other = DateRange.parse(b["pickup_date"], b["return_date"])
            if overlaps(other, date_range):
                busy.add(str(vid))
        return busy

    @staticmethod
    def find_available(group: VehicleGroup, pickup_location_id: Optional[str], date_range: DateRange, *,
                       store=None, exclude_booking_id: Optional[str] = None) -> List[Vehicle]:
        """
        Vehicles of `group` at `pickup_location_id` that can be handed out for `date_range`.
        - excluded: inactive, maintenance, unavailable
        - excluded: any confirmed/in-progress booking overlapping the range (half-open)
        - pickup_location_id=None skips the location filter (back-office reassignment)
        Ordered by lowest mileage. An empty list means sold out, not an error.
        """
        st = AvailabilityService._get_store(store)
        busy = AvailabilityService.busy_vehicle_ids(
            group.group_id, date_range, store=st, exclude_booking_id=exclude_booking_id
        )

        res = []
        for row in st.vehicles_in_group(group.group_id):
            v = vehicle_from_dict(row)
            if not v.in_service:
                continue
            if pickup_location_id is not None and v.current_location_id != str(pickup_location_id):
                continue
            if v.vehicle_id in busy:
                continue
            res.append(v)

        res.sort(key=_mileage_order)
        if not res:
            logger.info("Group %s sold out for %s", group.group_id, date_range.to_dict())
        return res

    @staticmethod
    def search(pickup_location_id: str, date_range: DateRange, *, store=None,
               default_km_per_day: int = DEFAULT_KM_PER_DAY) -> list[dict]:
        """
        Storefront search: one row per active group with at least one free vehicle,
        carrying the resolved rate and base price, cheapest first.
        """
        st = AvailabilityService._get_store(store)
        rows = []
        for gd in st.groups.values():
            group = group_from_dict(gd)
            if not group.is_active:
                continue
            vehicles = AvailabilityService.find_available(group, pickup_location_id, date_range, store=st)
            if not vehicles:
                continue
            rate = RateService.resolve_rate(group, date_range, default_km_per_day)
            rows.append({
                "group": group,
                "vehicles": vehicles,
                "available_count": len(vehicles),
                "days": date_range.days,
                "daily_price": rate.daily_price,
                "km_per_day": rate.km_per_day,
                "unlimited_km": rate.unlimited_km,
                "base_price": rate.daily_price * date_range.days,
                "deposit_amount": group.deposit_amount,
            })
        rows.sort(key=lambda r: (r["daily_price"], r["group"].name))
        return rows
