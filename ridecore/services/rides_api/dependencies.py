from starlette.requests import HTTPConnection

from ridecore.core.geo.service import BaseGeocoder
from ridecore.core.rides.orchestrator import RideOrchestrator


def get_orchestrator(conn: HTTPConnection) -> RideOrchestrator:
    return conn.app.state.orchestrator


def get_geocoder(conn: HTTPConnection) -> BaseGeocoder:
    return conn.app.state.geocoder
