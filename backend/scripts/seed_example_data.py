"""
Seed Example Data for KitchenPrint

This script seeds the database with a demo branch:
1. Stations (Grill, Bar) with their product categories
2. Printers for each station plus a cashier printer for control tickets
3. A small product catalog so category backfill has something to resolve

Existing rows (matched by name) are left untouched, so it is safe to run twice.

Run with: python backend/scripts/seed_example_data.py
"""
from decimal import Decimal

from sqlalchemy.orm import Session

from kitchenprint.db.session import SessionLocal, init_db
from kitchenprint.models.printer import Printer
from kitchenprint.models.product import Product
from kitchenprint.models.station import Station
from kitchenprint.schemas.printer import PrinterCreate, StationCreate
from kitchenprint.services import printer_config

DEMO_BRANCH = "demo"

STATIONS = [
    {"name": "Grill", "color": "#ef4444", "categories": ["burgers", "grill", "sides"]},
    {"name": "Bar", "color": "#3b82f6", "categories": ["drinks", "coffee"]},
    {"name": "Pastry", "color": "#f59e0b", "categories": ["desserts"]},
]

PRINTERS = [
    {"name": "Kitchen", "system_name": "192.168.1.50", "station": "Grill"},
    {"name": "Bar", "system_name": "192.168.1.51", "station": "Bar", "paper_width": 58,
     "characters_per_line": 32},
    # No station: prints every item and the control tickets
    {"name": "Cashier", "connection_type": "USB", "system_name": "EPSON TM-T20",
     "print_mode": "BOTH", "ticket_header": "Thanks for your visit!"},
]

PRODUCTS = [
    ("p-burger", "Classic Burger", "burgers", "12.50"),
    ("p-ribeye", "Ribeye Steak", "grill", "28.00"),
    ("p-fries", "Fries", "sides", "4.50"),
    ("p-lemonade", "Lemonade", "drinks", "3.75"),
    ("p-espresso", "Espresso", "coffee", "2.20"),
    ("p-flan", "Flan", "desserts", "5.90"),
]


def seed_stations(db: Session) -> dict:
    """Create the demo stations; returns them by name"""
    print("\n🍳 Seeding stations...")
    stations = {}
    for data in STATIONS:
        station = db.query(Station).filter(
            Station.branch_id == DEMO_BRANCH,
            Station.name == data["name"],
        ).first()
        if station:
            print(f"  ⏭️  Skipped (exists): {station.name}")
        else:
            station = printer_config.create_station(
                db, StationCreate(branch_id=DEMO_BRANCH, name=data["name"], color=data["color"])
            )
            station = printer_config.set_station_categories(db, station.id, data["categories"])
            print(f"  ✅ Created station: {station.name} ({', '.join(station.category_ids)})")
        stations[station.name] = station
    return stations


def seed_printers(db: Session, stations: dict) -> int:
    print("\n🖨️  Seeding printers...")
    created = 0
    for data in PRINTERS:
        data = dict(data)
        station_name = data.pop("station", None)
        exists = db.query(Printer).filter(
            Printer.branch_id == DEMO_BRANCH,
            Printer.name == data["name"],
        ).first()
        if exists:
            print(f"  ⏭️  Skipped (exists): {exists.name}")
            continue

        station = stations.get(station_name)
        printer = printer_config.create_printer(
            db,
            PrinterCreate(branch_id=DEMO_BRANCH, station_id=station.id if station else None, **data),
        )
        created += 1
        print(f"  ✅ Created printer: {printer.name} -> {printer.system_name} [{printer.print_mode.value}]")
    return created


def seed_products(db: Session) -> int:
    print("\n📦 Seeding products...")
    created = 0
    for product_id, name, category_id, price in PRODUCTS:
        if db.query(Product).filter(Product.id == product_id).first():
            continue
        db.add(Product(
            id=product_id,
            branch_id=DEMO_BRANCH,
            name=name,
            category_id=category_id,
            price=Decimal(price),
        ))
        created += 1
    db.commit()
    print(f"  ✅ {created} products created")
    return created


def main():
    """Main seed function"""
    print("=" * 60)
    print("KitchenPrint Example Data Seeder")
    print("=" * 60)

    init_db()
    db: Session = SessionLocal()

    try:
        stations = seed_stations(db)
        printers_created = seed_printers(db, stations)
        products_created = seed_products(db)

        print("\n" + "=" * 60)
        print("✅ Seeding complete!")
        print("=" * 60)
        print(f"\nSummary for branch '{DEMO_BRANCH}':")
        print(f"  🍳 Stations: {len(stations)}")
        print(f"  🖨️  Printers: {printers_created} created")
        print(f"  📦 Products: {products_created} created")
        print("\n💡 Tip: POST /api/v1/printers/{id}/test prints a test page on a printer")

    except Exception as e:
        print(f"\n❌ Error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
