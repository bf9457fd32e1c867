"""
Shipping rates and tracking.

This is a local stand-in for the courier rate provider: it answers with the same shapes the
provider does ({service, cost, etd} per courier service, city/province lists, tracking history)
from the tables below, so checkout can be built and tested without network access.

cost = service base rate per kg * ceil(weight in kg) * zone factor

Zones are derived from the origin and destination cities: same city, same province, same
island, or anything farther (unknown cities are treated as the farthest zone).
"""
import math
import os
import zlib
from datetime import datetime, timedelta
from typing import Any, Dict, List

from fastapi import HTTPException

from schemas import CalculateShippingInput

DEFAULT_ORIGIN_CITY_ID = int(os.getenv("STORE_ORIGIN_CITY_ID", "1"))

PROVINCES = [
    {"province_id": 1, "province_name": "Bali", "island": "Bali"},
    {"province_id": 2, "province_name": "Banten", "island": "Jawa"},
    {"province_id": 3, "province_name": "DI Yogyakarta", "island": "Jawa"},
    {"province_id": 4, "province_name": "DKI Jakarta", "island": "Jawa"},
    {"province_id": 5, "province_name": "Jawa Barat", "island": "Jawa"},
    {"province_id": 6, "province_name": "Jawa Tengah", "island": "Jawa"},
    {"province_id": 7, "province_name": "Jawa Timur", "island": "Jawa"},
    {"province_id": 8, "province_name": "Kalimantan Timur", "island": "Kalimantan"},
    {"province_id": 9, "province_name": "Sulawesi Selatan", "island": "Sulawesi"},
    {"province_id": 10, "province_name": "Sumatera Utara", "island": "Sumatera"},
]

CITIES = [
    {"city_id": 1, "city_name": "Jakarta Pusat", "province_id": 4},
    {"city_id": 2, "city_name": "Jakarta Utara", "province_id": 4},
    {"city_id": 3, "city_name": "Jakarta Selatan", "province_id": 4},
    {"city_id": 4, "city_name": "Jakarta Barat", "province_id": 4},
    {"city_id": 5, "city_name": "Jakarta Timur", "province_id": 4},
    {"city_id": 6, "city_name": "Bogor", "province_id": 5},
    {"city_id": 7, "city_name": "Depok", "province_id": 5},
    {"city_id": 8, "city_name": "Bekasi", "province_id": 5},
    {"city_id": 9, "city_name": "Tangerang", "province_id": 2},
    {"city_id": 10, "city_name": "Bandung", "province_id": 5},
    {"city_id": 11, "city_name": "Surabaya", "province_id": 7},
    {"city_id": 12, "city_name": "Medan", "province_id": 10},
    {"city_id": 13, "city_name": "Semarang", "province_id": 6},
    {"city_id": 14, "city_name": "Yogyakarta", "province_id": 3},
    {"city_id": 15, "city_name": "Denpasar", "province_id": 1},
    {"city_id": 16, "city_name": "Makassar", "province_id": 9},
    {"city_id": 17, "city_name": "Balikpapan", "province_id": 8},
    {"city_id": 18, "city_name": "Malang", "province_id": 7},
]

COURIERS = [
    {"code": "jne", "name": "JNE"},
    {"code": "pos", "name": "POS Indonesia"},
    {"code": "tiki", "name": "TIKI"},
    {"code": "jnt", "name": "J&T Express"},
    {"code": "sicepat", "name": "SiCepat"},
]

# courier -> [(service, base rate per kg in IDR, (min days, max days))]
SERVICES = {
    "jne": [("OKE", 8000, (3, 5)), ("REG", 10000, (2, 3)), ("YES", 18000, (1, 1))],
    "pos": [("Paket Kilat Khusus", 9000, (2, 4)), ("Express Next Day", 20000, (1, 1))],
    "tiki": [("ECO", 8500, (4, 5)), ("REG", 10500, (2, 3)), ("ONS", 19000, (1, 1))],
    "jnt": [("EZ", 9500, (2, 3))],
    "sicepat": [("REG", 9000, (2, 3)), ("BEST", 17000, (1, 1))],
}

# (factor, extra days) per zone
ZONE_SAME_CITY = (1.0, 0)
ZONE_SAME_PROVINCE = (1.5, 0)
ZONE_SAME_ISLAND = (2.0, 1)
ZONE_FAR = (3.0, 2)

TRACKING_EVENTS = [
    ("Diproses", "Paket diterima di gudang"),
    ("Dalam Pengiriman", "Paket dalam perjalanan ke hub transit"),
    ("Dalam Pengiriman", "Paket tiba di kota tujuan"),
    ("Sedang Diantar", "Paket sedang diantar kurir"),
    ("Terkirim", "Paket telah diterima"),
]

_cities_by_id = {c["city_id"]: c for c in CITIES}
_provinces_by_id = {p["province_id"]: p for p in PROVINCES}


def _require_courier(courier: str) -> None:
    if courier not in SERVICES:
        raise HTTPException(status_code=400, detail=f"Unsupported courier: {courier}")


def shipping_zone(origin_city_id: int, destination_city_id: int):
    origin = _cities_by_id.get(origin_city_id)
    destination = _cities_by_id.get(destination_city_id)
    if origin is None or destination is None:
        return ZONE_FAR
    if origin["city_id"] == destination["city_id"]:
        return ZONE_SAME_CITY
    if origin["province_id"] == destination["province_id"]:
        return ZONE_SAME_PROVINCE
    if _provinces_by_id[origin["province_id"]]["island"] == _provinces_by_id[destination["province_id"]]["island"]:
        return ZONE_SAME_ISLAND
    return ZONE_FAR


def format_etd(min_days: int, max_days: int) -> str:
    if min_days == max_days:
        return f"{min_days} hari"
    return f"{min_days}-{max_days} hari"


def calculate_shipping_cost(payload: CalculateShippingInput) -> Dict[str, List[Dict[str, Any]]]:
    if payload.weight <= 0:
        raise HTTPException(status_code=400, detail="Weight must be positive")
    courier = payload.courier.lower()
    _require_courier(courier)

    origin_city_id = payload.origin_city_id if payload.origin_city_id is not None else DEFAULT_ORIGIN_CITY_ID
    factor, extra_days = shipping_zone(origin_city_id, payload.destination_city_id)
    kilos = math.ceil(payload.weight / 1000)

    costs = []
    for service, rate, (min_days, max_days) in SERVICES[courier]:
        costs.append({
            "service": service,
            "cost": int(round(rate * kilos * factor)),
            "etd": format_etd(min_days + extra_days, max_days + extra_days),
        })
    return {"costs": costs}


def get_cities() -> List[Dict[str, Any]]:
    return [
        {"city_id": c["city_id"], "city_name": c["city_name"], "province": _provinces_by_id[c["province_id"]]["province_name"]}
        for c in CITIES
    ]


def get_provinces() -> List[Dict[str, Any]]:
    return [{"province_id": p["province_id"], "province_name": p["province_name"]} for p in PROVINCES]


def get_couriers() -> List[Dict[str, str]]:
    return [dict(c) for c in COURIERS]


def track_shipment(tracking_number: str, courier: str) -> Dict[str, Any]:
    if not tracking_number or not courier:
        raise HTTPException(status_code=400, detail="Tracking number and courier are required")
    _require_courier(courier.lower())

    # same tracking number -> same history
    seed = zlib.crc32(f"{courier.lower()}:{tracking_number}".encode("utf-8"))
    stage = seed % len(TRACKING_EVENTS)
    origin = CITIES[seed % len(CITIES)]["city_name"]
    destination = CITIES[(seed // len(CITIES)) % len(CITIES)]["city_name"]
    started = datetime(2024, 1, 1, 8, 0) + timedelta(days=seed % 300)

    history = []
    for step, (_, description) in enumerate(TRACKING_EVENTS[:stage + 1]):
        history.append({
            "date": (started + timedelta(hours=6 * step)).strftime("%Y-%m-%d %H:%M"),
            "description": description,
            "location": origin if step < 2 else destination,
        })
    return {"status": TRACKING_EVENTS[stage][0], "history": history}
