from pydantic import BaseModel, Field

class Coordinate(BaseModel):
    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)

    class Config:
        from_attributes = True
        frozen = True

class Address(Coordinate):
    """Координата с человекочитаемой подписью."""
    address: str

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(lat=self.lat, lng=self.lng)

class LocationSuggestion(BaseModel):
    """Подсказка адреса из результатов поиска (не сохраняется)."""
    display_name: str
    coordinate: Coordinate
    place_id: str

    def to_address(self) -> Address:
        return Address(
            lat=self.coordinate.lat,
            lng=self.coordinate.lng,
            address=self.display_name,
        )
