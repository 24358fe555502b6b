import datetime
import kopf


# Liveness probe
@kopf.on.probe(id='now')
def get_current_timestamp(**kwargs):
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


@kopf.on.probe(id='last_sync')
def get_last_sync(memo: kopf.Memo, **kwargs):
    """Time, trigger and result of the last completed sync cycle."""
    oauth_server = getattr(memo, "oauth_server", None)
    return getattr(oauth_server, "last_sync", None)
