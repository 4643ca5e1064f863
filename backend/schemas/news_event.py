from pydantic import BaseModel, Field


class SectorImpact(BaseModel):
    sector: str
    magnitude: float = Field(..., ge=0, le=1)
    volatility: float = Field(0.0, ge=0)


class SectorImpacts(BaseModel):
    positive: list[SectorImpact] = Field(default_factory=list)
    negative: list[SectorImpact] = Field(default_factory=list)

    def first_match(self, sector: str) -> tuple[SectorImpact | None, SectorImpact | None]:
        """First positive and first negative entry for a sector; later duplicates are ignored."""
        pos = next((i for i in self.positive if i.sector == sector), None)
        neg = next((i for i in self.negative if i.sector == sector), None)
        return pos, neg


class NewsEvent(BaseModel):
    """A scripted news item from the event catalog."""
    description: str
    sector_impacts: SectorImpacts = Field(default_factory=SectorImpacts, alias="sectorImpacts")
    delta_sentiment: float = Field(0.0, ge=-1, le=1, alias="deltaSentiment")
    significance: float = Field(0.0, ge=0, le=1)

    class Config:
        populate_by_name = True
