from __future__ import annotations

from datetime import date, timedelta
from typing import Optional

from faker import Faker

from immogest.data.models import (
    MAINTENANCE_CATEGORIES,
    MAINTENANCE_PRIORITIES,
    MAINTENANCE_REQUESTS,
    MaintenanceRequest,
    PROPERTIES,
    Property,
    TENANTS,
    Tenant,
    TRANSACTIONS,
    Transaction,
    UNITS,
    Unit,
)


fake = Faker("fr_FR")


FLOORS = ["rdc", "etage_1", "etage_2", "etage_3"]
UNIT_TYPES = ["studio", "f1", "f2", "f3", "f4"]
AMENITIES = ["wifi", "parking", "security", "ac", "balcony", "generator"]
OCCUPATIONS = ["Professeure", "Ingénieur", "Commerçante", "Médecin", "Comptable", "Étudiant"]

SEED_TS = "2024-01-01T00:00:00Z"


def demo_dataset() -> dict[str, list[dict]]:
    """
    Fixed demonstration dataset (Résidence Les Palmiers, Abidjan).

    Returns fresh dicts on every call so a store can own them outright.
    Unit statuses agree with tenant assignments: 1A and 2A are let, 2B is under maintenance.
    """
    properties = [
        {
            "id": "mock-property-1",
            "name": "Résidence Les Palmiers",
            "address": "Boulevard Lagunaire, Cocody, Abidjan, Côte d'Ivoire",
            "description": "Résidence moderne avec équipements mis à jour, proche du centre-ville et des transports en commun à Abidjan.",
            "total_units": 12,
            "year_built": 2018,
            "square_footage": 850,
            "owner_id": "mock-owner-1",
            "created_at": SEED_TS,
            "updated_at": SEED_TS,
        }
    ]

    units = [
        _unit(1, "1A", "rdc", "f2", 65, 2, 1, 180000, "Appartement lumineux avec balcon donnant sur jardin", ["wifi", "parking", "security"], False, "occupied"),
        _unit(2, "1B", "rdc", "f1", 45, 1, 1, 120000, "Studio moderne avec kitchenette équipée", ["wifi", "ac", "security"], True, "available"),
        _unit(3, "2A", "etage_1", "f3", 85, 3, 2, 250000, "Grand appartement familial avec terrasse", ["wifi", "parking", "security", "balcony"], False, "occupied"),
        _unit(4, "2B", "etage_1", "f2", 70, 2, 1, 190000, "Appartement rénové avec vue dégagée", ["wifi", "ac", "security"], False, "maintenance"),
        _unit(5, "3A", "etage_2", "f2", 68, 2, 1, 185000, "Appartement calme avec beaucoup de lumière", ["wifi", "parking", "security"], False, "available"),
    ]

    tenants = [
        {
            "id": "mock-tenant-1",
            "unit_id": "mock-unit-1",
            "name": "Awa Traoré",
            "email": "awa.traore@email.com",
            "phone": "+225 07 12 34 56 78",
            "lease_start": "2024-01-15",
            "lease_end": "2025-01-14",
            "rent_amount": 180000,
            "deposit_amount": 360000,
            "emergency_contact": "+225 05 11 22 33 44",
            "occupation": "Professeure",
            "created_at": SEED_TS,
            "updated_at": SEED_TS,
        },
        {
            "id": "mock-tenant-2",
            "unit_id": "mock-unit-3",
            "name": "Kouadio Michel",
            "email": "kouadio.michel@email.com",
            "phone": "+225 05 98 76 54 32",
            "lease_start": "2024-03-01",
            "lease_end": "2025-02-28",
            "rent_amount": 250000,
            "deposit_amount": 500000,
            "emergency_contact": "+225 07 55 66 77 88",
            "occupation": "Ingénieur",
            "created_at": SEED_TS,
            "updated_at": SEED_TS,
        },
        {
            "id": "mock-tenant-3",
            "unit_id": None,
            "name": "Aminata Kone",
            "email": "aminata.kone@email.com",
            "phone": "+225 01 23 45 67 89",
            "lease_start": "2024-06-01",
            "lease_end": "2025-05-31",
            "rent_amount": 0,
            "deposit_amount": 0,
            "emergency_contact": "+225 07 99 88 77 66",
            "occupation": "Commerçante",
            "created_at": SEED_TS,
            "updated_at": SEED_TS,
        },
    ]

    maintenance_requests = [
        _request(1, "mock-unit-1", "Fuite robinet cuisine", "Eau qui goutte du robinet de cuisine, réparation ou remplacement nécessaire",
                 "plumbing", "medium", "in-progress", "2024-12-10", "2024-12-18", None, "Awa Traoré", "Plomberie Express CI", 90000, None),
        _request(2, "mock-unit-3", "Climatisation ne refroidit pas", "Climatiseur du salon ne maintient pas la température",
                 "hvac", "high", "scheduled", "2024-12-11", "2024-12-19", None, "Kouadio Michel", "Froid Service Abidjan", 180000, None),
        _request(3, "mock-unit-2", "Peinture écaillée salle de bain", "Peinture qui s'écaille dans la salle de bain due à l'humidité",
                 "general", "low", "pending", "2024-12-12", None, None, "Propriétaire", None, 75000, None),
        _request(4, "mock-unit-4", "Prise électrique défaillante", "Prise de courant dans la chambre principale ne fonctionne pas",
                 "electrical", "urgent", "completed", "2024-12-08", "2024-12-09", "2024-12-09", "Propriétaire", "Électricité Moderne CI", 50000, 45000),
    ]

    transactions = [
        _transaction(1, "income", "Paiement Loyer - Logement 1A", 180000, "Loyer", "mock-tenant-1", "2024-12-01"),
        _transaction(2, "income", "Paiement Loyer - Logement 2A", 250000, "Loyer", "mock-tenant-2", "2024-12-01"),
        _transaction(3, "expense", "Réparation Électricité - Logement 2B", 45000, "Maintenance", None, "2024-12-09"),
        _transaction(4, "expense", "Assurance propriété - Mois de décembre", 85000, "Assurance", None, "2024-12-05"),
    ]

    return {
        PROPERTIES: properties,
        UNITS: units,
        TENANTS: tenants,
        MAINTENANCE_REQUESTS: maintenance_requests,
        TRANSACTIONS: transactions,
    }


def _unit(n, number, floor, type_, surface, bedrooms, bathrooms, rent, description, amenities, furnished, status) -> Unit:
    return {
        "id": f"mock-unit-{n}",
        "property_id": "mock-property-1",
        "unit_number": number,
        "floor": floor,
        "type": type_,
        "surface": surface,
        "bedrooms": bedrooms,
        "bathrooms": bathrooms,
        "rent": rent,
        "deposit": rent * 2,
        "description": description,
        "amenities": list(amenities),
        "furnished": furnished,
        "status": status,
        "created_at": SEED_TS,
        "updated_at": SEED_TS,
    }


def _request(n, unit_id, title, description, category, priority, status, reported, scheduled, completed,
             reported_by, assigned_to, estimated, actual) -> MaintenanceRequest:
    return {
        "id": f"mock-maintenance-{n}",
        "unit_id": unit_id,
        "title": title,
        "description": description,
        "category": category,
        "priority": priority,
        "status": status,
        "reported_date": reported,
        "scheduled_date": scheduled,
        "completed_date": completed,
        "reported_by": reported_by,
        "assigned_to": assigned_to,
        "estimated_cost": estimated,
        "actual_cost": actual,
        "created_at": f"{reported}T00:00:00Z",
        "updated_at": f"{completed or reported}T00:00:00Z",
    }


def _transaction(n, type_, description, amount, category, tenant_id, on) -> Transaction:
    return {
        "id": f"mock-transaction-{n}",
        "property_id": "mock-property-1",
        "type": type_,
        "description": description,
        "amount": amount,
        "category": category,
        "tenant_id": tenant_id,
        "date": on,
        "created_at": f"{on}T00:00:00Z",
        "updated_at": f"{on}T00:00:00Z",
    }


#
# Create payloads for demos and tests. Seeded so a run is reproducible.
#


def fake_property_fields(seed: Optional[int] = None) -> Property:
    if seed is not None:
        fake.seed_instance(seed)
    return {
        "name": f"Résidence {fake.last_name()}",
        "address": fake.address().replace("\n", ", "),
        "description": fake.sentence(nb_words=12),
        "total_units": fake.random_int(4, 40),
        "year_built": fake.random_int(1975, 2024),
        "square_footage": fake.random_int(300, 3000),
    }


def fake_unit_fields(property_id: str, seed: Optional[int] = None) -> Unit:
    if seed is not None:
        fake.seed_instance(seed)
    bedrooms = fake.random_int(0, 4)
    rent = 60000 + bedrooms * 45000 + fake.random_int(0, 20) * 1000
    return {
        "property_id": property_id,
        "unit_number": f"{fake.random_int(1, 9)}{fake.random_uppercase_letter()}",
        "floor": fake.random_element(FLOORS),
        "type": UNIT_TYPES[min(bedrooms, len(UNIT_TYPES) - 1)],
        "surface": 25 + bedrooms * 20,
        "bedrooms": bedrooms,
        "bathrooms": 1 if bedrooms < 3 else 2,
        "rent": rent,
        "deposit": rent * 2,
        "description": fake.sentence(nb_words=8),
        "amenities": fake.random_elements(AMENITIES, length=3, unique=True),
        "furnished": fake.boolean(),
        "status": "available",
    }


def fake_tenant_fields(unit_id: Optional[str] = None, rent_amount: float = 150000, seed: Optional[int] = None) -> Tenant:
    if seed is not None:
        fake.seed_instance(seed)
    start = fake.date_between(start_date=date(2024, 1, 1), end_date=date(2025, 6, 30))
    return {
        "unit_id": unit_id,
        "name": fake.name(),
        "email": fake.email(),
        "phone": fake.phone_number(),
        "lease_start": start.isoformat(),
        "lease_end": (start + timedelta(days=364)).isoformat(),
        "rent_amount": rent_amount,
        "deposit_amount": rent_amount * 2,
        "emergency_contact": fake.phone_number(),
        "occupation": fake.random_element(OCCUPATIONS),
    }


def fake_maintenance_fields(unit_id: str, seed: Optional[int] = None) -> MaintenanceRequest:
    if seed is not None:
        fake.seed_instance(seed)
    return {
        "unit_id": unit_id,
        "title": fake.sentence(nb_words=4).rstrip("."),
        "description": fake.sentence(nb_words=14),
        "category": fake.random_element(MAINTENANCE_CATEGORIES),
        "priority": fake.random_element(MAINTENANCE_PRIORITIES),
        "status": "pending",
        "reported_date": fake.date_between(start_date=date(2024, 1, 1), end_date=date(2024, 12, 31)).isoformat(),
        "scheduled_date": None,
        "completed_date": None,
        "reported_by": fake.name(),
        "assigned_to": None,
        "estimated_cost": fake.random_int(10, 300) * 1000,
        "actual_cost": None,
    }
