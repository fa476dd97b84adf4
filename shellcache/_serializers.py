import base64
import json
import typing as tp

from ._models import CacheEntry

__all__ = ("BaseSerializer", "JSONSerializer")


class BaseSerializer:
    def dumps(self, entry: CacheEntry) -> tp.Union[str, bytes]:
        raise NotImplementedError()

    def loads(self, data: tp.Union[str, bytes]) -> CacheEntry:
        raise NotImplementedError()

    @property
    def is_binary(self) -> bool:
        raise NotImplementedError()


class JSONSerializer(BaseSerializer):
    """A simple json-based serializer."""

    def dumps(self, entry: CacheEntry) -> tp.Union[str, bytes]:
        """
        Dumps a cache entry.

        :param entry: A stored response together with its key and timestamp
        :type entry: CacheEntry
        :return: Serialized entry
        :rtype: tp.Union[str, bytes]
        """
        full_json = {
            "key": entry.key,
            "response": {
                "status": entry.status_code,
                "headers": [[name, value] for name, value in entry.headers],
                "content": base64.b64encode(entry.content).decode("ascii"),
            },
            "stored_at": entry.stored_at,
            "extra": entry.extra,
        }
        return json.dumps(full_json, indent=4)

    def loads(self, data: tp.Union[str, bytes]) -> CacheEntry:
        """
        Loads a cache entry from serialized data.

        :param data: Serialized data
        :type data: tp.Union[str, bytes]
        :return: The stored entry
        :rtype: CacheEntry
        """
        full_json = json.loads(data)
        response_dict = full_json["response"]

        return CacheEntry(
            key=full_json["key"],
            status_code=response_dict["status"],
            headers=[(name, value) for name, value in response_dict["headers"]],
            content=base64.b64decode(response_dict["content"].encode("ascii")),
            stored_at=full_json["stored_at"],
            extra=full_json.get("extra", {}),
        )

    @property
    def is_binary(self) -> bool:
        return False
