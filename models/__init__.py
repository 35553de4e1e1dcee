from .tenant import Tenant
from .itam import ItamAsset, ItamSyncRun, SYNC_OWNED_FIELDS, USER_OWNED_FIELDS
