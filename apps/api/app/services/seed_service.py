"""
Demo data seeder.

Loads one org with a manager, a service tech (scoped to every demo site) and
an operator (scoped to the first site), plus sites with tanks, pumps, an
initial layout and one raised alert. seed_if_empty() is safe to call on every
startup.
"""

import logging
from datetime import datetime, timezone

from app.core.security import hash_password
from app.db import identifiers
from app.db.enums import AlertSeverity, AlertSourceType, ConnectionKind, LinkStatus, Role
from app.db.gateway import PersistenceGateway
from app.schemas.auth import OrgRecord, UserRecord
from app.schemas.equipment import PumpRead, PumpSideRead, TankRead
from app.schemas.site import SiteIntegrationRead, SiteRead
from app.schemas.telemetry import ConnectionStatusRead, TankMeasurementRead
from app.services import alert_service, layout_service

logger = logging.getLogger(__name__)

DEMO_ORG_ID = "org-demo"
DEMO_ORG_NAME = "Demo Petroleum"
DEMO_PASSWORD = "demo123"
DEMO_MANAGER_ID = "user-manager"

DEMO_USERS = [
    # (id, email, name, role)
    ("user-manager", "manager@demo.com", "Demo Manager", Role.MANAGER),
    ("user-tech", "tech@demo.com", "Demo Tech", Role.SERVICE_TECH),
    ("user-operator", "operator@demo.com", "Demo Operator", Role.OPERATOR),
]

DEMO_SITES = [
    {
        "site_code": "1001",
        "name": "Riverside Fuel",
        "address": "120 River Rd, Hartford, CT",
        "postal_code": "06103",
        "region": "Northeast",
        "lat": 41.7658,
        "lon": -72.6734,
        "atg_host": "10.10.1.20",
        "tanks": [
            ("1", "Regular Unleaded", "ULR", 40000),
            ("2", "Premium Unleaded", "ULP", 20000),
            ("3", "Diesel", "DSL", 30000),
        ],
        "pumps": 4,
    },
    {
        "site_code": "1002",
        "name": "Hillcrest Express",
        "address": "88 Summit Ave, Springfield, MA",
        "postal_code": "01103",
        "region": "Northeast",
        "lat": 42.1015,
        "lon": -72.5898,
        "atg_host": "10.10.2.20",
        "tanks": [
            ("1", "Regular Unleaded", "ULR", 30000),
            ("2", "Diesel", "DSL", 20000),
        ],
        "pumps": 2,
    },
]

# Initial reading as a share of capacity
SEED_FILL_RATIO = 0.68


def demo_scene(site_code: str, pump_numbers: list[int], tank_ids: list[str]) -> dict:
    """A simple forecourt scene: pumps in a row, tanks behind them."""
    objects = [
        {"id": f"pump-{n}", "type": "pump", "pumpNumber": n, "x": 120 * i + 80, "y": 160}
        for i, n in enumerate(pump_numbers)
    ]
    objects += [
        {"id": f"tank-{t}", "type": "tank", "atgTankId": t, "x": 140 * i + 80, "y": 360}
        for i, t in enumerate(tank_ids)
    ]
    objects.append({"id": "kiosk", "type": "building", "x": 80, "y": 40, "w": 240, "h": 80})
    return {"siteId": site_code, "width": 800, "height": 480, "objects": objects}


def seed_demo_data(gw: PersistenceGateway) -> list[str]:
    """Insert the demo data set in one transaction. Returns the new site ids."""
    now = datetime.now(timezone.utc)
    site_ids: list[str] = []

    with gw.transaction():
        gw.add_org(OrgRecord(id=DEMO_ORG_ID, name=DEMO_ORG_NAME))

        first_pump_id = None
        for entry in DEMO_SITES:
            site_id = identifiers.site_id(entry["site_code"])
            site_ids.append(site_id)
            gw.add_site(
                SiteRead(
                    id=site_id,
                    org_id=DEMO_ORG_ID,
                    site_code=entry["site_code"],
                    name=entry["name"],
                    address=entry["address"],
                    postal_code=entry["postal_code"],
                    region=entry["region"],
                    lat=entry["lat"],
                    lon=entry["lon"],
                    created_at=now,
                    updated_at=now,
                )
            )
            gw.add_integration(SiteIntegrationRead(site_id=site_id, atg_host=entry["atg_host"]))

            for atg_tank_id, label, product, capacity in entry["tanks"]:
                tank_id = identifiers.tank_id(site_id, atg_tank_id)
                gw.add_tank(
                    TankRead(
                        id=tank_id,
                        site_id=site_id,
                        atg_tank_id=atg_tank_id,
                        label=label,
                        product=product,
                        capacity_liters=capacity,
                    )
                )
                gw.add_measurement(
                    TankMeasurementRead(
                        id=f"tm-{tank_id}",
                        site_id=site_id,
                        tank_id=tank_id,
                        ts=now,
                        fuel_volume_l=round(capacity * SEED_FILL_RATIO),
                        fuel_height_mm=1200,
                        water_height_mm=20,
                        temp_c=18.2,
                        ullage_l=round(capacity * (1 - SEED_FILL_RATIO)),
                        raw_payload="seed",
                    )
                )

            pump_numbers = list(range(1, entry["pumps"] + 1))
            for number in pump_numbers:
                pump_id = identifiers.pump_id(site_id, number)
                first_pump_id = first_pump_id or pump_id
                sides = [
                    PumpSideRead(
                        id=identifiers.pump_side_id(pump_id, letter),
                        pump_id=pump_id,
                        side=letter,
                        ip=f"10.20.{number}.{10 + i}",
                    )
                    for i, letter in enumerate(("A", "B"))
                ]
                gw.add_pump(
                    PumpRead(
                        id=pump_id,
                        site_id=site_id,
                        pump_number=number,
                        label=f"Pump {number}",
                        sides=sides,
                    )
                )
                for side in sides:
                    gw.add_connection_status(
                        ConnectionStatusRead(
                            id=identifiers.pump_side_connection_id(side.id),
                            site_id=site_id,
                            kind=ConnectionKind.PUMP_SIDE,
                            target_id=side.id,
                            status=LinkStatus.CONNECTED,
                            last_seen_at=now,
                        )
                    )

            gw.add_connection_status(
                ConnectionStatusRead(
                    id=identifiers.atg_connection_id(site_id),
                    site_id=site_id,
                    kind=ConnectionKind.ATG,
                    status=LinkStatus.CONNECTED,
                    last_seen_at=now,
                )
            )
            layout_service.publish_layout(
                gw,
                DEMO_MANAGER_ID,
                site_id,
                demo_scene(entry["site_code"], pump_numbers, [t[0] for t in entry["tanks"]]),
                name="Initial Layout",
            )

        password_hash = hash_password(DEMO_PASSWORD)
        scopes = {
            Role.MANAGER: [],
            Role.SERVICE_TECH: list(site_ids),
            Role.OPERATOR: site_ids[:1],
        }
        for user_id, email, name, role in DEMO_USERS:
            gw.add_user(
                UserRecord(
                    id=user_id,
                    org_id=DEMO_ORG_ID,
                    email=email,
                    name=name,
                    role=role,
                    password_hash=password_hash,
                    site_ids=scopes[role],
                )
            )

        if site_ids:
            gw.add_alert(
                alert_service.new_alert(
                    site_ids[0],
                    alert_id="alert-1",
                    source_type=AlertSourceType.PUMP_SIDE,
                    pump_id=first_pump_id,
                    side="A",
                    component="cardreader",
                    severity=AlertSeverity.WARN,
                    code="CR-204",
                    message="Card reader timeout",
                    raw_payload="seed",
                    now=now,
                )
            )

    logger.info("Seeded demo data: %d sites", len(site_ids))
    return site_ids


def seed_if_empty(gw: PersistenceGateway) -> bool:
    """Seed demo data when no user exists yet. Returns True if it seeded."""
    if gw.count_users() > 0:
        return False
    seed_demo_data(gw)
    return True
