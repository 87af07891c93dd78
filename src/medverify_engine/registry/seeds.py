"""Sample catalogue used for demos and local development."""

from datetime import date
from typing import Any

from medverify_engine.common.exceptions import ProductConflictError

_MANUFACTURED = date(2026, 1, 1)

# (product_id, name, manufacturer, expiry_date)
_SAMPLES = [
    ("MED-AUTH200000", "Paracetamol 500mg", "Nepal Pharma Ltd", date(2026, 12, 31)),
    ("MED-AUTH200001", "Amoxicillin 250mg", "Himalayan Drugs", date(2027, 6, 30)),
    ("MED-AUTH200002", "Ibuprofen 400mg", "Nepal Pharma Ltd", date(2026, 11, 15)),
    ("MED-AUTH200003", "Ciprofloxacin 500mg", "Kathmandu Pharmaceuticals", date(2027, 3, 20)),
    ("MED-AUTH200004", "Metformin 500mg", "Himalayan Drugs", date(2027, 8, 10)),
    ("MED-AUTH200005", "Omeprazole 20mg", "Nepal Pharma Ltd", date(2026, 10, 25)),
    ("MED-AUTH200006", "Aspirin 75mg", "Pokhara Medicines", date(2027, 5, 18)),
    ("MED-AUTH200007", "Atorvastatin 10mg", "Kathmandu Pharmaceuticals", date(2027, 2, 14)),
    ("MED-AUTH200008", "Losartan 50mg", "Himalayan Drugs", date(2027, 7, 22)),
    ("MED-AUTH200009", "Amlodipine 5mg", "Nepal Pharma Ltd", date(2026, 9, 30)),
    ("MED-AUTH200010", "Cetirizine 10mg", "Pokhara Medicines", date(2027, 4, 12)),
    ("MED-AUTH200011", "Azithromycin 500mg", "Kathmandu Pharmaceuticals", date(2027, 1, 28)),
    ("MED-AUTH200012", "Doxycycline 100mg", "Himalayan Drugs", date(2027, 6, 15)),
    ("MED-AUTH200013", "Ranitidine 150mg", "Nepal Pharma Ltd", date(2026, 12, 20)),
    ("MED-AUTH200014", "Diclofenac 50mg", "Pokhara Medicines", date(2027, 3, 8)),
    ("MED-AUTH200015", "Prednisolone 5mg", "Kathmandu Pharmaceuticals", date(2027, 8, 25)),
    ("MED-AUTH200016", "Levothyroxine 50mcg", "Himalayan Drugs", date(2027, 5, 30)),
    ("MED-AUTH200017", "Salbutamol 100mcg", "Nepal Pharma Ltd", date(2026, 11, 10)),
    ("MED-AUTH200018", "Insulin Glargine 100U", "Pokhara Medicines", date(2027, 2, 28)),
    ("MED-AUTH200019", "Warfarin 5mg", "Kathmandu Pharmaceuticals", date(2027, 7, 15)),
    ("MED-AUTH200020", "Furosemide 40mg", "Himalayan Drugs", date(2027, 4, 20)),
]

SAMPLE_MEDICINES: list[dict[str, Any]] = [
    {
        "product_id": product_id,
        "name": name,
        "manufacturer": manufacturer,
        "batch_number": f"B2026-{product_id[-3:]}",
        "manufacture_date": _MANUFACTURED,
        "expiry_date": expiry,
    }
    for product_id, name, manufacturer, expiry in _SAMPLES
]


async def seed_catalogue(catalogue) -> tuple[list[str], list[str]]:
    """Register every sample medicine that is not there yet.

    Returns (created, skipped) product ID lists.
    """
    created: list[str] = []
    skipped: list[str] = []
    for seed in SAMPLE_MEDICINES:
        try:
            await catalogue.register(
                seed["name"],
                seed["manufacturer"],
                seed["batch_number"],
                seed["manufacture_date"],
                seed["expiry_date"],
                registered_by="seed",
                product_id=seed["product_id"],
            )
        except ProductConflictError:
            skipped.append(seed["product_id"])
            continue
        created.append(seed["product_id"])
    return created, skipped
