"""
Base layer discovery from a WMTS capabilities document.

Discovery is network bound and may be slow. Each load takes a generation
id; a result is applied only if no newer load has started since, so a
late response can never replace a newer base layer configuration. When
the fetch fails the loader falls back to a plain OSM layer and keeps a
notice for the host to show.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence
from xml.etree import ElementTree as ET

import requests

from map_errors import ConfigurationError, NetworkError
from map_utils import LayerZOrder, TileLayer
from tile_grid import TileMatrixSet, format_tile_url

logger = logging.getLogger(__name__)

WMTS_NS = "http://www.opengis.net/wmts/1.0"
OWS_NS = "http://www.opengis.net/ows/1.1"
NS = {"wmts": WMTS_NS, "ows": OWS_NS}

REQUEST_TIMEOUT = 30


@dataclass(frozen=True)
class BaseLayerDescriptor:
    """A base layer as offered by the catalog.

    ``url`` is either a WMTS RESTful template ({TileMatrixSet}, {TileMatrix},
    {TileCol}, {TileRow}) or an XYZ template ({z}, {x}, {y}).
    """
    id: str
    name: str
    url: str


FALLBACK_BASE_LAYER = BaseLayerDescriptor(
    id="osm",
    name="OpenStreetMap",
    url="https://tile.openstreetmap.org/{z}/{x}/{y}.png",
)


@dataclass
class WmtsLayerInfo:
    """One <Layer> of a WMTS capabilities document."""
    identifier: str
    title: str
    abstract: Optional[str] = None
    formats: List[str] = field(default_factory=list)
    styles: List[str] = field(default_factory=list)
    tile_matrix_sets: List[str] = field(default_factory=list)
    resource_urls: List[dict] = field(default_factory=list)

    def tile_template(self) -> Optional[str]:
        """Template of the first tile ResourceURL, if any."""
        for resource in self.resource_urls:
            if resource.get("resourceType") == "tile" and resource.get("template"):
                return resource["template"]
        return None


def _text(element, path: str) -> Optional[str]:
    found = element.find(path, NS)
    if found is None or found.text is None:
        return None
    return found.text.strip()


def parse_capabilities(xml_text: str) -> List[WmtsLayerInfo]:
    """Parse the layers of a WMTS GetCapabilities response.

    Raises:
        NetworkError: the response is not a parsable XML document
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise NetworkError(f"Malformed WMTS capabilities: {e}") from e

    layers = []
    for layer_el in root.iter(f"{{{WMTS_NS}}}Layer"):
        identifier = _text(layer_el, "ows:Identifier")
        if not identifier:
            logger.warning("Skipping WMTS layer without identifier")
            continue
        info = WmtsLayerInfo(
            identifier=identifier,
            title=_text(layer_el, "ows:Title") or identifier,
            abstract=_text(layer_el, "ows:Abstract"),
        )
        for style_el in layer_el.findall("wmts:Style", NS):
            style_id = _text(style_el, "ows:Identifier")
            if style_id:
                info.styles.append(style_id)
        for format_el in layer_el.findall("wmts:Format", NS):
            if format_el.text:
                info.formats.append(format_el.text.strip())
        for link_el in layer_el.findall("wmts:TileMatrixSetLink", NS):
            tms = _text(link_el, "wmts:TileMatrixSet")
            if tms:
                info.tile_matrix_sets.append(tms)
        for res_el in layer_el.findall("wmts:ResourceURL", NS):
            info.resource_urls.append({
                "format": res_el.get("format", ""),
                "resourceType": res_el.get("resourceType", ""),
                "template": res_el.get("template", ""),
            })
        layers.append(info)
    return layers


class CatalogClient:
    """Fetches base layer descriptors from a WMTS capabilities URL."""

    def __init__(self, capabilities_url: str, timeout: float = REQUEST_TIMEOUT):
        self.capabilities_url = capabilities_url
        self.timeout = timeout

    def fetch_capabilities(self) -> str:
        """GET the capabilities document.

        Raises:
            NetworkError: connection failure, timeout or non-200 status
        """
        logger.info("Fetching WMTS capabilities from %s", self.capabilities_url)
        try:
            response = requests.get(self.capabilities_url, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise NetworkError(f"Timed out fetching {self.capabilities_url}") from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Failed to fetch {self.capabilities_url}: {e}") from e

        if response.status_code != 200:
            raise NetworkError(
                f"WMTS capabilities request failed: {response.status_code} {response.reason}"
            )
        return response.text

    def fetch_base_layers(self, layer_ids: Optional[Sequence[str]] = None) -> List[BaseLayerDescriptor]:
        """Descriptors for every capabilities layer that has a tile template.

        Args:
            layer_ids: Optional whitelist of layer identifiers, in display order
        """
        layers = parse_capabilities(self.fetch_capabilities())
        by_id = {}
        for info in layers:
            template = info.tile_template()
            if template is None:
                logger.debug("WMTS layer %s has no tile ResourceURL", info.identifier)
                continue
            by_id[info.identifier] = BaseLayerDescriptor(id=info.identifier, name=info.title, url=template)

        if layer_ids is None:
            return list(by_id.values())

        descriptors = []
        for layer_id in layer_ids:
            if layer_id in by_id:
                descriptors.append(by_id[layer_id])
            else:
                logger.warning("Base layer %s not offered by %s", layer_id, self.capabilities_url)
        return descriptors


def xyz_template(url: str, matrix_set_id: str) -> str:
    """Normalize a descriptor URL to a {z}/{x}/{y} template.

    Raises:
        ConfigurationError: neither an XYZ nor a complete WMTS template
    """
    if all(p in url for p in ("{z}", "{x}", "{y}")):
        return url
    return format_tile_url(url, matrix_set_id)


def build_tile_layer(descriptor: BaseLayerDescriptor, matrix_set: TileMatrixSet,
                     z_order: int = LayerZOrder.BASE) -> TileLayer:
    """TileLayer for a descriptor; raises ConfigurationError for a bad URL."""
    return TileLayer(
        layer_id=descriptor.id,
        name=descriptor.name,
        url_template=xyz_template(descriptor.url, matrix_set.matrix_set_id),
        tile_matrix_set=matrix_set,
        z_order=z_order,
    )


class BaseLayerLoader:
    """Loads base layers with a generation guard against stale results.

    Attributes:
        layers: TileLayers of the latest applied load
        notice: User-visible message from the latest applied load, if any
        errors: Configuration errors of descriptors that were skipped
    """

    def __init__(
        self,
        client: Optional[CatalogClient],
        matrix_set: TileMatrixSet,
        fallback: BaseLayerDescriptor = FALLBACK_BASE_LAYER,
        layer_ids: Optional[Sequence[str]] = None,
    ):
        self.client = client
        self.matrix_set = matrix_set
        self.fallback = fallback
        self.layer_ids = layer_ids
        self.layers: List[TileLayer] = []
        self.notice: Optional[str] = None
        self.errors: List[ConfigurationError] = []
        self.applied_generation = 0
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def generation(self) -> int:
        return self._generation

    def begin(self) -> int:
        """Start a new load and return its generation id."""
        with self._lock:
            self._generation += 1
            return self._generation

    def apply(self, generation: int, descriptors: Sequence[BaseLayerDescriptor],
              notice: Optional[str] = None) -> bool:
        """Install the result of a load if it is still the latest.

        Descriptors with a bad URL template are skipped, never added.

        Returns:
            False when the result belongs to an outdated generation
        """
        with self._lock:
            if generation != self._generation:
                logger.info("Discarding stale base layer result (generation %d, latest %d)",
                            generation, self._generation)
                return False

            layers, errors = [], []
            for descriptor in descriptors:
                try:
                    layers.append(build_tile_layer(descriptor, self.matrix_set, self._z_order(descriptor)))
                except ConfigurationError as e:
                    logger.error("Skipping base layer %s: %s", descriptor.id, e)
                    errors.append(e)

            if not layers:
                layers.append(build_tile_layer(self.fallback, self.matrix_set, LayerZOrder.FALLBACK_BASE))
                notice = notice or "No base layers available, showing the default map"

            layers[0].visible = True
            self.layers = layers
            self.errors = errors
            self.notice = notice
            self.applied_generation = generation
            return True

    def snapshot(self) -> tuple:
        """(applied generation, layers, errors, notice) of the latest applied load."""
        with self._lock:
            return self.applied_generation, list(self.layers), list(self.errors), self.notice

    def _z_order(self, descriptor: BaseLayerDescriptor) -> int:
        if descriptor == self.fallback:
            return LayerZOrder.FALLBACK_BASE
        return LayerZOrder.BASE

    def _fetch(self) -> tuple:
        if self.client is None:
            return [self.fallback], None
        try:
            return self.client.fetch_base_layers(self.layer_ids), None
        except NetworkError as e:
            logger.warning("Base layer discovery failed, using fallback: %s", e)
            return [self.fallback], f"Base layers could not be loaded ({e}); showing the default map"

    def load(self) -> bool:
        """Fetch and apply base layers synchronously."""
        generation = self.begin()
        descriptors, notice = self._fetch()
        return self.apply(generation, descriptors, notice)

    def load_in_background(self, on_done: Optional[Callable[[bool], None]] = None) -> threading.Thread:
        """Fetch on a worker thread; the result is applied only if still current.

        Args:
            on_done: Called with apply()'s result once the worker finishes
        """
        generation = self.begin()

        def worker():
            descriptors, notice = self._fetch()
            applied = self.apply(generation, descriptors, notice)
            if on_done is not None:
                on_done(applied)

        thread = threading.Thread(target=worker, name=f"base-layers-{generation}", daemon=True)
        thread.start()
        return thread
