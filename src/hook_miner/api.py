import os

from fastapi import APIRouter, FastAPI, HTTPException
import structlog

from hook_miner import schemas
from hook_miner.errors import ConfigurationError
from hook_miner.flags import ALL_FLAGS_MASK, PRESETS, HookFlag, parse_flags
from hook_miner.miner import DEFAULT_MAX_ITERATIONS, mine
from hook_miner.models import MiningRequest, result_to_dict
from hook_miner.utils import parse_fingerprint, parse_identity, parse_salt
from hook_miner.verifier import verify_deployment

log = structlog.get_logger(__name__)

MAX_ITERATIONS_ENV = "HOOK_MINER_API_MAX_ITERATIONS"

app = FastAPI(title="Hook Salt Miner API")
router = APIRouter()


def api_max_iterations() -> int:
    """Upper bound a single API call may search."""
    raw = os.environ.get(MAX_ITERATIONS_ENV)
    if raw is None:
        return DEFAULT_MAX_ITERATIONS
    try:
        cap = int(raw, 0)
    except ValueError:
        raise ConfigurationError(f"{MAX_ITERATIONS_ENV} must be an integer, got {raw!r}") from None
    if cap < 0:
        raise ConfigurationError(f"{MAX_ITERATIONS_ENV} must be >= 0, got {cap}")
    return cap


def _flags_to_mask(flags: schemas.FlagsField) -> int:
    if isinstance(flags, list):
        return parse_flags(flags)
    return parse_flags([flags])


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/flags", response_model=schemas.FlagsResponse)
def flags():
    """ List the hook flags and the named presets. """
    return schemas.FlagsResponse(
        flags=[
            schemas.FlagInfo(name=flag.name, bit=int(flag).bit_length() - 1, value=int(flag))
            for flag in sorted(HookFlag, reverse=True)
        ],
        all_flags_mask=ALL_FLAGS_MASK,
        presets=PRESETS,
    )


@router.post("/mine", response_model=schemas.MineResponse)
def mine_salt(req: schemas.MineRequest):
    """ Search for the smallest salt whose CREATE2 address carries the requested flags.
    Not finding one, or asking for an impossible mask, is reported in `status`.
    """
    try:
        cap = api_max_iterations()
    except ConfigurationError as e:
        log.error("bad server configuration", error=str(e))
        raise HTTPException(status_code=503, detail=str(e))
    if req.max_iterations > cap:
        raise HTTPException(status_code=400, detail=f"max_iterations must be <= {cap}")

    try:
        request = MiningRequest(
            identity=parse_identity(req.deployer),
            fingerprint=parse_fingerprint(req.init_code_hash),
            target_mask=_flags_to_mask(req.flags),
            max_iterations=req.max_iterations,
        )
    except ValueError as e:
        log.warning("rejected mining request", error=str(e))
        raise HTTPException(status_code=400, detail=str(e))

    result = mine(request)
    log.info("mining request served", deployer=req.deployer, **result_to_dict(result))
    return schemas.MineResponse(**result_to_dict(result))


@router.post("/verify", response_model=schemas.VerifyResponse)
def verify(req: schemas.VerifyRequest):
    """ Recompute the address for a salt and check its flags. """
    try:
        salt = req.salt if isinstance(req.salt, int) else parse_salt(req.salt)
        deployed = None
        if req.deployed_address is not None:
            deployed = int.from_bytes(parse_identity(req.deployed_address), "big")
        report = verify_deployment(
            identity=parse_identity(req.deployer),
            salt=salt,
            fingerprint=parse_fingerprint(req.init_code_hash),
            target_mask=_flags_to_mask(req.flags),
            deployed_address=deployed,
        )
    except (ValueError, OverflowError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    return schemas.VerifyResponse(**report.to_dict())


# Include the router in the app (after all routes are defined)
app.include_router(router, prefix="/api")
