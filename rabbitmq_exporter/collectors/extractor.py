"""Extraction of flat metric values from overview documents.

The overview document is decoded into a generic tree and only three
sections are read from it::

    object_totals   connections, channels, queues, consumers, exchanges
    queue_totals    messages, messages_ready, messages_unacknowledged
    message_stats   publish, deliver_get, ... plus *_details mappings

Every value in those sections is classified before use. Numbers are
copied, anything else (strings, booleans, nested mappings) is skipped.
"""

import json
import logging
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from ..utils.metrics import MetricSample
from ..utils.status import FieldStatus

SECTIONS = ("object_totals", "queue_totals", "message_stats")
NODE_FIELD = "node"


def classify_number(section: Mapping[str, Any], key: str) -> Tuple[FieldStatus, Optional[float]]:
    """
    Classify one key of a section.

    Args:
        section: Decoded section mapping
        key: Key to look up

    Returns:
        Tuple of the field status and the value as float (None unless NUMERIC)
    """
    if key not in section:
        return FieldStatus.ABSENT, None

    value = section[key]
    # bool is an int subclass; JSON true/false is not a metric
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return FieldStatus.WRONG_TYPE, None

    return FieldStatus.NUMERIC, float(value)


class OverviewExtractor:
    """Turns raw overview documents into MetricSample objects."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = (logger or logging.getLogger(__name__)).getChild(self.__class__.__name__)

    def extract(self, payload: Union[bytes, str, Mapping[str, Any]]) -> MetricSample:
        """
        Extract numeric metrics and the node identity from a payload.

        Args:
            payload: Raw response body, or an already decoded document

        Returns:
            MetricSample: Extracted values; empty when the body cannot be decoded
        """
        document = self.decode(payload)
        if document is None:
            return MetricSample()

        values: Dict[str, float] = {}
        for name in SECTIONS:
            section = self._section(document, name)
            for key in section:
                status, value = classify_number(section, key)
                if status.is_usable():
                    values[key] = value
                else:
                    self.logger.debug(f"Skipping non-numeric field {name}.{key}")

        node = document.get(NODE_FIELD)
        if not isinstance(node, str):
            node = ""

        return MetricSample(values=values, node=node)

    def decode(self, payload: Union[bytes, str, Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
        """
        Decode a payload into a mapping.

        Returns:
            The decoded document, or None if it is malformed or not a mapping
        """
        if isinstance(payload, Mapping):
            return dict(payload)

        try:
            document = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as e:
            self.logger.error(f"Failed to decode overview document: {e}")
            return None

        if not isinstance(document, dict):
            self.logger.error(
                f"Overview document is a {type(document).__name__}, expected an object"
            )
            return None

        return document

    def _section(self, document: Mapping[str, Any], name: str) -> Mapping[str, Any]:
        section = document.get(name)
        if section is None:
            self.logger.debug(f"Section {name} missing from overview")
            return {}
        if not isinstance(section, dict):
            self.logger.debug(f"Section {name} is a {type(section).__name__}, ignoring")
            return {}
        return section


def extract(payload: Union[bytes, str, Mapping[str, Any]],
            logger: Optional[logging.Logger] = None) -> Tuple[MetricSample, str]:
    """Extract a sample and return it together with the node identity."""
    sample = OverviewExtractor(logger).extract(payload)
    return sample, sample.node
