from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field

from hook_miner.address import CREATE2_DEPLOYER
from hook_miner.miner import DEFAULT_MAX_ITERATIONS

FlagsField = Union[int, str, List[Union[int, str]]]


class MineRequest(BaseModel):
    deployer: str = CREATE2_DEPLOYER
    init_code_hash: str
    flags: FlagsField
    max_iterations: int = Field(default=DEFAULT_MAX_ITERATIONS, ge=0)


class MineResponse(BaseModel):
    status: str
    iterations: int
    salt: Optional[int] = None
    salt_hex: Optional[str] = None
    address: Optional[str] = None
    flags: Optional[int] = None
    flag_names: List[str] = Field(default_factory=list)
    target_mask: Optional[int] = None


class VerifyRequest(BaseModel):
    deployer: str = CREATE2_DEPLOYER
    init_code_hash: str
    salt: Union[int, str]
    flags: FlagsField
    deployed_address: Optional[str] = None


class VerifyResponse(BaseModel):
    ok: bool
    salt: int
    address: str
    flags: int
    expected_flags: int
    flags_match: bool
    deployed_address: Optional[str] = None
    address_match: bool


class FlagInfo(BaseModel):
    name: str
    bit: int
    value: int


class FlagsResponse(BaseModel):
    flags: List[FlagInfo]
    all_flags_mask: int
    presets: Dict[str, int]
