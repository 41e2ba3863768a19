"""
Environment Detector

Architectural Intent:
- Detects the instance's Environment from instance metadata exactly once
  per container; concurrent first callers are serialized by a lock so the
  metadata service is queried only once
- The VPC facts are read from the primary MAC (the one reporting
  device-number 0), falling back to the first MAC listed
- Any failure to reach the metadata service is an InstanceEnvironmentError;
  an instance outside a VPC is unsupported
"""

import logging
import threading
from typing import Optional

from enisync.domain.errors import (
    InstanceEnvironmentError,
    MetadataConnectionFailed,
    MetadataNotFound,
)
from enisync.domain.ports.metadata_port import MetadataPort
from enisync.domain.value_objects.environment import Environment

logger = logging.getLogger(__name__)


class EnvironmentDetector:
    def __init__(self, metadata: MetadataPort):
        self.metadata = metadata
        self._lock = threading.Lock()
        self._environment: Optional[Environment] = None

    def __call__(self) -> Environment:
        return self.detect()

    def detect(self) -> Environment:
        with self._lock:
            if self._environment is None:
                self._environment = self._detect()
                logger.debug("Detected environment %s", self._environment.to_dict())
            return self._environment

    def _detect(self) -> Environment:
        try:
            with self.metadata.session() as meta:
                instance_id = meta.instance("instance-id")
                zone = meta.instance("placement/availability-zone")
                hwaddr = self._primary_hwaddr(meta)
                vpc_id = meta.interface(hwaddr, "vpc-id", not_found=None)
                if not vpc_id:
                    raise InstanceEnvironmentError(
                        "This instance is not in a VPC; EC2-Classic is not supported"
                    )
                vpc_cidr = meta.interface(hwaddr, "vpc-ipv4-cidr-block")
        except (MetadataConnectionFailed, MetadataNotFound) as e:
            raise InstanceEnvironmentError("Unable to load EC2 meta-data") from e

        try:
            return Environment(
                instance_id=instance_id.strip(),
                availability_zone=zone.strip(),
                vpc_id=vpc_id.strip(),
                vpc_cidr=vpc_cidr.strip(),
            )
        except ValueError as e:
            raise InstanceEnvironmentError(f"Invalid EC2 meta-data: {e}") from e

    @staticmethod
    def _primary_hwaddr(meta) -> str:
        macs = [
            line.strip().rstrip("/")
            for line in meta.instance("network/interfaces/macs/").splitlines()
            if line.strip()
        ]
        if not macs:
            raise InstanceEnvironmentError("No network interfaces in EC2 meta-data")
        for hwaddr in macs:
            if meta.interface(hwaddr, "device-number", not_found="").strip() == "0":
                return hwaddr
        return macs[0]
