from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field


class BronApiRequest(BaseModel):
    domain: Optional[str] = None
    endpoint: str = "articles"


class BronFeedRequest(BaseModel):
    domain: Optional[str] = None


class BronDashboardRequest(BaseModel):
    domain: str = Field(min_length=1)


class BronArticle(BaseModel):
    id: str
    title: str
    url: str
    domain: str
    publishedAt: str
    status: Literal["pending", "published", "scheduled"]
    keywords: list[str]
    anchorText: Optional[str] = None
    targetUrl: Optional[str] = None
    daScore: Optional[float] = None
    drScore: Optional[float] = None


class BronBacklink(BaseModel):
    id: str
    sourceUrl: str
    sourceDomain: str
    targetUrl: str
    anchorText: str
    daScore: float
    drScore: float
    createdAt: str
    status: Literal["active", "pending", "lost"]
    dofollow: bool = True


class BronRanking(BaseModel):
    id: str
    keyword: str
    position: float
    previousPosition: Optional[float] = None
    url: str
    searchVolume: Optional[float] = None
    difficulty: Optional[float] = None
    updatedAt: str


class BronKeyword(BaseModel):
    id: str
    keyword: str
    cluster: Optional[str] = None
    volume: Optional[float] = None
    difficulty: Optional[float] = None
    intent: Optional[Literal["informational", "transactional", "navigational", "commercial"]] = None
    articles: float = 0


class BronCluster(BaseModel):
    id: str
    name: str
    keywords: list[str]
    articles: float = 0
    avgPosition: Optional[float] = None


class BronDeepLink(BaseModel):
    id: str
    sourceUrl: str
    targetUrl: str
    anchorText: str
    createdAt: str
    clicks: Optional[float] = None


class BronAuthority(BaseModel):
    domainAuthority: float
    domainRating: float
    trustFlow: Optional[float] = None
    citationFlow: Optional[float] = None
    referringDomains: float
    totalBacklinks: float
    organicKeywords: Optional[float] = None
    organicTraffic: Optional[float] = None
    updatedAt: str


class BronProfile(BaseModel):
    domain: str
    category: Optional[str] = None
    language: Optional[str] = None
    country: Optional[str] = None
    description: Optional[str] = None
    lastCrawled: Optional[str] = None
    pagesIndexed: Optional[float] = None


class BronStats(BaseModel):
    totalArticles: float = 0
    publishedArticles: float = 0
    pendingArticles: float = 0
    totalBacklinks: float = 0
    activeBacklinks: float = 0
    totalKeywords: float = 0
    avgDa: float = 0
    avgDr: float = 0


class BronCampaign(BaseModel):
    id: str
    name: str
    status: Literal["active", "paused", "completed"]
    startDate: str
    endDate: Optional[str] = None
    articlesCreated: float = 0
    backlinksBuilt: float = 0


class BronDashboardData(BaseModel):
    articles: list[BronArticle] = Field(default_factory=list)
    backlinks: list[BronBacklink] = Field(default_factory=list)
    rankings: list[BronRanking] = Field(default_factory=list)
    keywords: list[BronKeyword] = Field(default_factory=list)
    clusters: list[BronCluster] = Field(default_factory=list)
    deepLinks: list[BronDeepLink] = Field(default_factory=list)
    authority: Optional[BronAuthority] = None
    profile: Optional[BronProfile] = None
    stats: Optional[BronStats] = None
    campaigns: list[BronCampaign] = Field(default_factory=list)

    @property
    def has_any_data(self) -> bool:
        return bool(
            self.articles
            or self.backlinks
            or self.rankings
            or self.keywords
            or self.clusters
            or self.deepLinks
            or self.campaigns
            or self.authority is not None
            or self.stats is not None
        )


class BronDashboardResponse(BaseModel):
    domain: str
    data: BronDashboardData
    errors: dict[str, Optional[str]]
    hasAnyData: bool
    lastUpdated: Optional[str] = None
