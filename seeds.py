from rentalcore import create_app
from rentalcore.models.store import Store


def ensure_discount(store: Store, data: dict):
    """
    Ensure a discount code exists in the store.
    - If exists: leave usage counters untouched (idempotent).
    - If not:   create it.
    """
    if store.get_discount(data["code"]) is None:
        store.create_discount(data)


def main():
    app = create_app()
    with app.app_context():
        store = Store.instance()

        # ---- Locations ----
        if not store.locations:
            store.create_location({
                "location_id": "mad-airport", "name": "Madrid Airport",
                "allows_different_return": True, "different_return_fee": "30",
            })
            store.create_location({
                "location_id": "mad-centre", "name": "Madrid Centre",
                "allows_different_return": True, "different_return_fee": "15",
            })
            store.create_location({
                "location_id": "toledo", "name": "Toledo",
                "allows_different_return": False, "different_return_fee": "0",
            })

        # ---- Vehicle groups (with length-of-rental tiers) ----
        if not store.groups:
            store.create_group({
                "group_id": "economy", "name": "Economy", "code": "A",
                "daily_price": "40", "km_per_day": 150, "deposit_amount": "300",
                "rate_tiers": [
                    {"min_days": 1, "max_days": 6, "daily_price": "40", "km_per_day": 150},
                    {"min_days": 7, "daily_price": "34", "km_per_day": 200},
                ],
            })
            store.create_group({
                "group_id": "compact", "name": "Compact", "code": "B",
                "daily_price": "55", "km_per_day": 150, "deposit_amount": "500",
            })
            store.create_group({
                "group_id": "van", "name": "Cargo Van", "code": "V",
                "daily_price": "85", "km_per_day": 250, "deposit_amount": "800",
                "extra_km_price": "0.25",
            })

        # ---- Demo vehicles (create only if none exist) ----
        if not store.vehicles:
            store.create_vehicle({
                "group_id": "economy", "plate": "1234KLM", "brand": "Fiat", "model": "Panda",
                "current_location_id": "mad-airport", "current_mileage": 12000,
            })
            store.create_vehicle({
                "group_id": "economy", "plate": "5678KLM", "brand": "Toyota", "model": "Aygo",
                "current_location_id": "mad-airport", "current_mileage": 8400,
            })
            store.create_vehicle({
                "group_id": "compact", "plate": "2468LMN", "brand": "Seat", "model": "Leon",
                "current_location_id": "mad-centre", "current_mileage": 30500,
            })
            store.create_vehicle({
                "group_id": "van", "plate": "1357MNP", "brand": "Renault", "model": "Trafic",
                "current_location_id": "mad-airport", "current_mileage": 64000,
                "status": "maintenance",
            })

        # ---- Extras ----
        if not store.extras:
            store.create_extra({"extra_id": "gps", "name": "GPS", "unit_price": "5",
                                "is_per_rental": True, "max_quantity": 1})
            store.create_extra({"extra_id": "child-seat", "name": "Child seat", "unit_price": "3",
                                "is_per_rental": False, "max_quantity": 3})

        # ---- Discount codes ----
        ensure_discount(store, {"code": "SUMMER10", "type": "percentage", "value": "10", "min_days": 2})
        ensure_discount(store, {"code": "WELCOME20", "type": "fixed", "value": "20",
                                "min_amount": "100", "max_uses": 100})

        store.save()

        print("Seed complete.")
        print(f"Groups: {len(store.groups)}  Vehicles: {len(store.vehicles)}  Locations: {len(store.locations)}")
        print("Discount codes: SUMMER10, WELCOME20")


if __name__ == "__main__":
    main()
