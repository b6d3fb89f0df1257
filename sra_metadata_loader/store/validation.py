"""書き込み前の validation hook。

entity の型ごとに validator 関数を登録し、MetadataStore が create / update /
link 作成 / link 削除の前に同期的に呼び出す。validator は ValidationError を送出して書き込みを拒否する。
"""
from typing import Any, Callable, Dict, List, Optional, Type

from sra_metadata_loader.errors import ValidationError
from sra_metadata_loader.schema import ReferenceSequence

Validator = Callable[[Any], None]


def validate_taxonomy_link(reference_sequence: ReferenceSequence) -> None:
    """ReferenceSequence は必ず Taxonomy と紐づいていなければならない。"""
    if reference_sequence.taxonomy is None:
        raise ValidationError(
            "ReferenceSequence",
            reference_sequence.accessionVersionId,
            "reference sequence must be linked to a valid taxonomy",
        )


class ValidatorRegistry:
    def __init__(self) -> None:
        self._validators: Dict[Type[Any], List[Validator]] = {}

    def register(self, kind: Type[Any], validator: Validator) -> None:
        self._validators.setdefault(kind, []).append(validator)

    def get(self, kind: Type[Any]) -> List[Validator]:
        return list(self._validators.get(kind, []))

    def validate(self, entity: Any) -> None:
        for validator in self._validators.get(type(entity), []):
            validator(entity)


def default_registry(extra: Optional[Dict[Type[Any], List[Validator]]] = None) -> ValidatorRegistry:
    registry = ValidatorRegistry()
    registry.register(ReferenceSequence, validate_taxonomy_link)
    for kind, validators in (extra or {}).items():
        for validator in validators:
            registry.register(kind, validator)
    return registry
