import hashlib

from policyfeed.schemas.resources import ResourceRecord


def calc_checksum(resource: ResourceRecord) -> str:
    """
    SHA-256 of provider name, address and the raw (pre-filter) values payload.

    Raw values are used so the checksum does not move when allow-lists change.
    """
    digest = hashlib.sha256()
    digest.update(resource.provider_name.encode("utf-8"))
    digest.update(resource.address.encode("utf-8"))
    digest.update(resource.raw_values_payload.encode("utf-8"))
    return digest.hexdigest()
