"""Deterministic text description of a property listing."""

from embed_properties.models import SourceRecord


def _yes_no(value: bool | None) -> str:
    return "Yes" if value else "No"


def _is_rent(transaction_type: str | None) -> bool:
    return bool(transaction_type) and "rent" in transaction_type.lower()


def build_property_description(record: SourceRecord) -> str:
    """
    Build the text to embed for a property listing.

    Fields are rendered one per line in a fixed order. Empty, missing and zero
    values are left out entirely, except the exclusivity flag which is always
    rendered as Yes/No.

    Args:
        record: Decoded source record

    Returns:
        Newline-joined description text
    """
    ad = record.ad
    title = ad.title if ad else None
    description = ad.description if ad else None
    transaction_type = ad.transaction_type if ad else None

    lines = []

    if title:
        lines.append(f"Title: {title}")
    if description:
        lines.append(f"Description: {description}")

    location = ", ".join(part for part in (record.region, record.city, record.state) if part)
    if location:
        lines.append(f"Location: {location}")

    if record.property_type:
        lines.append(f"Property Type: {record.property_type}")
    if transaction_type:
        lines.append(f"Transaction Type: {transaction_type}")
    if record.area and record.area > 0:
        lines.append(f"Area: {record.area:.2f} m²")
    if record.total_area and record.total_area > 0:
        lines.append(f"Total Area: {record.total_area:.2f} m²")

    # Rent listings without a rent price fall back to the asking price
    if _is_rent(transaction_type) and record.rent_price and record.rent_price > 0:
        lines.append(f"Price: Rent ${record.rent_price:.2f}")
    elif record.asking_price and record.asking_price > 0:
        lines.append(f"Price: Sale ${record.asking_price:.2f}")

    for label, count in (
        ("Bedrooms", record.bedrooms),
        ("Suites", record.suites),
        ("Bathrooms", record.bathrooms),
        ("Parking Spots", record.parking_spots),
    ):
        if count and count > 0:
            lines.append(f"{label}: {count}")

    if record.building:
        lines.append(f"Building: {record.building}")

    lines.append(f"Exclusive: {_yes_no(record.is_exclusive)}")

    features = ", ".join(feature for feature in record.features or [] if feature)
    if features:
        lines.append(f"Features: {features}")

    return "\n".join(lines)
