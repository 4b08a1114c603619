# Insert Sample Managed Properties
from sqlmodel import Session, SQLModel

import models.visit  # noqa: F401  (tables referenced by foreign keys)
import models.override_audit  # noqa: F401
from db.session import engine
from models.property import ManagedProperty

DEMO_PROPERTIES = [
    dict(
        id="ELM-COURT",
        name="Elm Court Apartments",
        master_qr_code="MQR-ELM-COURT",
        geofence_center_lat=40.0,
        geofence_center_lng=-73.0,
        geofence_radius_meters=30.0,
        geofence_manual_override_allowed=True,
    ),
    dict(
        id="HARBOR-LOFTS",
        name="Harbor Lofts",
        master_qr_code="MQR-HARBOR-LOFTS",
        geofence_center_lat=38.9931538759034,
        geofence_center_lng=-76.9428334513501,
        geofence_radius_meters=100.0,
        # Strict site: no way past the grace band
        geofence_manual_override_allowed=False,
    ),
    dict(
        id="OAK-ANNEX",
        name="Oak Annex (no fence yet)",
        master_qr_code="MQR-OAK-ANNEX",
    ),
]


def seed_properties():
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        for data in DEMO_PROPERTIES:
            # Check if property already exists to avoid duplicates
            if session.get(ManagedProperty, data["id"]):
                print(f"{data['id']} already exists")
                continue
            session.add(ManagedProperty(**data))
            print(f"Added {data['id']}")

        session.commit()


if __name__ == "__main__":
    seed_properties()
