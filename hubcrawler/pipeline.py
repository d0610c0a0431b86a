"""
Concurrent fetch-and-aggregate pipeline

    catalog -> tag lists (one sequential worker)
            -> manifests and digests (one worker per repository, bounded pool)
            -> ranked images

Failures at any tier are handed to an ErrorSink and turned into messages;
they stop the worker that hit them and nothing else.
"""

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, Iterator, List, Optional, Any

from .base import (
    AggregatedImage,
    AggregationResult,
    LEVEL_DANGER,
    LEVEL_INFO,
    Message,
    Provenance,
    ResolvedTag,
)
from .client import Deadline, RegistryClient
from .config import AppConfig
from .errors import ProvenanceDecodeError, RegistryError
from .provenance import decode_provenance
from .ranking import DEFAULT_TAG_LIMIT, rank_tags

logger = logging.getLogger(__name__)

# Marks the end of a stream
_DONE = object()


def _drain(stream: queue.Queue) -> Iterator[Any]:
    while True:
        item = stream.get()
        if item is _DONE:
            return
        yield item


class ErrorSink:
    """
    Collects failures from every stage into user-visible messages

    A single consumer thread owns the message list. Call close() once all
    producers are finished; it waits until every queued error is recorded.
    """

    def __init__(self):
        self._messages: List[Message] = []
        self._stream: queue.Queue = queue.Queue()
        self._closed = False
        self._consumer = threading.Thread(
            target=self._consume, name='hubcrawler-errors', daemon=True
        )
        self._consumer.start()

    def report(self, error: Exception, level: str = LEVEL_DANGER) -> None:
        self._stream.put(Message(level, str(error)))

    def _consume(self) -> None:
        for message in _drain(self._stream):
            if message.level == LEVEL_DANGER:
                logger.warning(message.text)
            else:
                logger.info(message.text)
            self._messages.append(message)

    def close(self) -> List[Message]:
        """Stop accepting errors and return every recorded message"""
        if not self._closed:
            self._closed = True
            self._stream.put(_DONE)
            self._consumer.join()
        return list(self._messages)


class CatalogFetcher:
    """Retrieves the repository names of the registry"""

    def __init__(self, client: RegistryClient, errors: ErrorSink):
        self.client = client
        self.errors = errors

    def fetch(self, deadline: Optional[Deadline] = None) -> List[str]:
        """
        Returns:
            Repository names, or an empty list when the catalog is unavailable
        """
        try:
            return self.client.fetch_catalog(deadline)['repositories']
        except RegistryError as e:
            self.errors.report(e)
            return []


class ImageTagLister:
    """
    Lists the tags of each repository with one sequential worker

    Records are emitted as soon as each tag list arrives. The first failure
    ends the walk; repositories not reached by then are left out.
    """

    def __init__(self, client: RegistryClient, errors: ErrorSink):
        self.client = client
        self.errors = errors

    def _walk(self, repositories: Iterator[str], out: queue.Queue,
              deadline: Optional[Deadline], failures: List[BaseException]) -> None:
        try:
            for name in repositories:
                try:
                    record = self.client.fetch_tag_list(name, deadline)
                except RegistryError as e:
                    self.errors.report(e)
                    return
                out.put(record)
        except Exception as e:
            # Not a registry failure; handed back to the consumer by stream()
            failures.append(e)
        finally:
            out.put(_DONE)

    def stream(self, repositories: Iterable[str],
               deadline: Optional[Deadline] = None) -> Iterator[Dict[str, Any]]:
        """
        Args:
            repositories: Repository names, consumed lazily and in order

        Yields:
            Dicts with 'name' and 'tags', in catalog order

        Raises:
            Any non-registry exception raised while walking, after the
            records before it have been yielded
        """
        out: queue.Queue = queue.Queue()
        failures: List[BaseException] = []
        worker = threading.Thread(
            target=self._walk,
            args=(iter(repositories), out, deadline, failures),
            name='hubcrawler-tags',
            daemon=True,
        )
        worker.start()
        yield from _drain(out)
        worker.join()
        if failures:
            raise failures[0]


class TagManifestResolver:
    """Resolves provenance and digest for every tag of one repository"""

    def __init__(self, client: RegistryClient, errors: ErrorSink,
                 surface_provenance_errors: bool = False):
        """
        Args:
            client: Registry client
            errors: Where failures are reported
            surface_provenance_errors: Record undecodable provenance as an
                info message instead of dropping it silently (default: False)
        """
        self.client = client
        self.errors = errors
        self.surface_provenance_errors = surface_provenance_errors

    def _provenance(self, repository: str, tag: str, manifest: Dict[str, Any]) -> Provenance:
        try:
            return decode_provenance(manifest)
        except ProvenanceDecodeError as e:
            logger.debug("No provenance for %s:%s: %s", repository, tag, e)
            if self.surface_provenance_errors:
                self.errors.report(
                    ProvenanceDecodeError(f"No provenance for {repository}:{tag}: {e}"),
                    level=LEVEL_INFO,
                )
            return Provenance()

    def resolve(self, record: Dict[str, Any],
                deadline: Optional[Deadline] = None) -> List[ResolvedTag]:
        """
        Resolve tags one after another

        A failed manifest lookup drops that tag; a failed digest lookup keeps
        it without a digest. Either way no further tags of this repository are
        resolved.

        Args:
            record: Tag list record with 'name' and 'tags'

        Returns:
            Tags resolved before the first failure, in discovery order
        """
        repository = record['name']
        resolved = []

        for tag_name in record['tags']:
            try:
                manifest = self.client.fetch_manifest(repository, tag_name, deadline)
            except RegistryError as e:
                self.errors.report(e)
                break

            tag = ResolvedTag(tag_name, self._provenance(repository, tag_name, manifest))

            try:
                tag.digest = self.client.fetch_digest(repository, tag_name, deadline)
            except RegistryError as e:
                self.errors.report(e)
                resolved.append(tag)
                break

            resolved.append(tag)

        return resolved


class Aggregator:
    """Runs one resolver worker per repository and collects ranked images"""

    def __init__(self, resolver: TagManifestResolver, max_workers: int = 8,
                 tag_limit: int = DEFAULT_TAG_LIMIT):
        self.resolver = resolver
        self.max_workers = max_workers
        self.tag_limit = tag_limit

    def _aggregate(self, record: Dict[str, Any], finished: queue.Queue,
                   deadline: Optional[Deadline]) -> None:
        tags = self.resolver.resolve(record, deadline)
        finished.put(AggregatedImage(record['name'], rank_tags(tags, self.tag_limit)))

    def run(self, records: Iterable[Dict[str, Any]],
            deadline: Optional[Deadline] = None) -> List[AggregatedImage]:
        """
        Args:
            records: Tag list records; workers start as records arrive

        Returns:
            Images in the order their workers finished
        """
        finished: queue.Queue = queue.Queue()

        with ThreadPoolExecutor(max_workers=self.max_workers,
                                thread_name_prefix='hubcrawler-repo') as pool:
            futures = [
                pool.submit(self._aggregate, record, finished, deadline)
                for record in records
            ]

        # Every worker is done here; re-raise anything that was not a registry error
        for future in futures:
            future.result()

        finished.put(_DONE)
        return list(_drain(finished))


def aggregate(config: AppConfig, client: Optional[RegistryClient] = None) -> AggregationResult:
    """
    Build the overview of a registry

    Args:
        config: Runtime configuration
        client: Registry client (default: one built from config)

    Returns:
        AggregationResult with images and any recorded messages
    """
    client = client or RegistryClient(config.registry, scheme=config.registry_scheme)
    deadline = Deadline(config.request_deadline)
    errors = ErrorSink()
    images: List[AggregatedImage] = []

    try:
        repositories = CatalogFetcher(client, errors).fetch(deadline)
        lister = ImageTagLister(client, errors)
        resolver = TagManifestResolver(
            client, errors,
            surface_provenance_errors=config.surface_provenance_errors,
        )
        aggregator = Aggregator(resolver, max_workers=config.max_workers,
                                tag_limit=config.tag_limit)
        images = aggregator.run(lister.stream(repositories, deadline), deadline)
    finally:
        messages = errors.close()

    logger.info("Aggregated %d images from %s with %d messages",
                len(images), config.registry, len(messages))
    return AggregationResult(config.registry, images, messages)
