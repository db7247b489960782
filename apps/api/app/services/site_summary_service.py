"""
Site summary aggregation.

Rolls raw alarm, pump-side and connection rows up into one SiteSummary per
site. Every entity type is fetched once for the whole id set and joined here,
so the cost does not grow with one round-trip per site.
"""

from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

from app.db.enums import AlertSeverity, ConnectionKind, LinkStatus
from app.db.gateway import PersistenceGateway
from app.schemas.site import SiteIntegrationRead, SiteRead, SiteSummary

DEFAULT_ATG_STALE_SEC = SiteIntegrationRead.model_fields["atg_stale_sec"].default


def is_atg_stale(
    last_seen_at: datetime | None,
    stale_sec: int,
    now: datetime | None = None,
) -> bool:
    if last_seen_at is None:
        return True
    now = now or datetime.now(timezone.utc)
    return now - last_seen_at > timedelta(seconds=stale_sec)


def summarize(
    gw: PersistenceGateway,
    org_id: str,
    site_ids: Sequence[str],
    now: datetime | None = None,
) -> list[SiteSummary]:
    """
    Summaries for the given sites, ordered by site_code.

    site_ids must already be restricted to the caller's permitted set. Ids that
    are not sites of org_id are skipped.
    """
    if not site_ids:
        return []
    sites = gw.list_sites(org_id, site_ids)
    return summarize_sites(gw, sites, now=now)


def summarize_sites(
    gw: PersistenceGateway,
    sites: Sequence[SiteRead],
    now: datetime | None = None,
) -> list[SiteSummary]:
    if not sites:
        return []
    now = now or datetime.now(timezone.utc)
    ids = [site.id for site in sites]

    alert_counts = gw.count_raised_alerts(ids)
    stale_after = {i.site_id: i.atg_stale_sec for i in gw.list_integrations(ids)}

    # pump side id -> site id
    side_sites: dict[str, str] = {}
    for pump in gw.list_pumps(ids):
        for side in pump.sides:
            side_sites[side.id] = pump.site_id

    connected_sides: dict[str, set[str]] = {}
    atg_last_seen: dict[str, datetime] = {}
    for row in gw.list_connection_status(ids):
        if row.kind == ConnectionKind.PUMP_SIDE:
            if row.status != LinkStatus.CONNECTED or row.target_id not in side_sites:
                continue
            if side_sites[row.target_id] != row.site_id:
                continue
            connected_sides.setdefault(row.site_id, set()).add(row.target_id)
        elif row.kind == ConnectionKind.ATG and row.last_seen_at is not None:
            current = atg_last_seen.get(row.site_id)
            if current is None or row.last_seen_at > current:
                atg_last_seen[row.site_id] = row.last_seen_at

    expected: dict[str, int] = {}
    for site_id in side_sites.values():
        expected[site_id] = expected.get(site_id, 0) + 1

    summaries = []
    for site in sorted(sites, key=lambda s: (s.site_code, s.id)):
        counts = alert_counts.get(site.id, {})
        last_seen = atg_last_seen.get(site.id)
        summaries.append(
            SiteSummary(
                id=site.id,
                site_code=site.site_code,
                name=site.name,
                address=site.address,
                postal_code=site.postal_code,
                region=site.region,
                lat=site.lat,
                lon=site.lon,
                critical_count=counts.get(AlertSeverity.CRITICAL, 0),
                warn_count=counts.get(AlertSeverity.WARN, 0),
                pump_sides_expected=expected.get(site.id, 0),
                pump_sides_connected=len(connected_sides.get(site.id, ())),
                atg_last_seen_at=last_seen,
                atg_stale=is_atg_stale(
                    last_seen, stale_after.get(site.id, DEFAULT_ATG_STALE_SEC), now
                ),
            )
        )
    return summaries
