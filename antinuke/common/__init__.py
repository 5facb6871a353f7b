import orjson
from pydantic import VERSION, BaseModel


class Base(BaseModel):
    def model_dump(self, *args, **kwargs):
        if VERSION >= "2.0.1":
            return super().model_dump(*args, **kwargs)
        if kwargs.pop("mode", "") == "json":
            return orjson.loads(super().json(*args, **kwargs))
        return super().dict(*args, **kwargs)

    @classmethod
    def model_validate(cls, obj, *args, **kwargs):
        if VERSION >= "2.0.1":
            return super().model_validate(obj, *args, **kwargs)
        return super().parse_obj(obj, *args, **kwargs)

    def dump_json(self) -> bytes:
        """Serialize to pretty JSON bytes (used for file exports)"""
        return orjson.dumps(self.model_dump(mode="json"), option=orjson.OPT_INDENT_2)
