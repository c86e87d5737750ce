"""Support/resistance, chart pattern and indicator snapshot endpoints."""

from fastapi import APIRouter, HTTPException
import logging

from config import get_settings
from models.market_data import Candle
from models.technicals import (
    AnalysisRequest, PatternType,
    SupportResistanceResponse, PatternDetectionResponse,
    SnapshotResponse, FullTechnicalResponse,
)
from services.candle_loader import candles_from_bars, candles_from_klines, trim_candles
from services.indicator_engine import IndicatorEngine
from services.pattern_detector import detect_patterns
from services.support_resistance import detect_support_resistance

router = APIRouter()
logger = logging.getLogger(__name__)


def _load_candles(request: AnalysisRequest) -> list[Candle]:
    """Candles from whichever payload the request carries, trimmed to max_bars."""
    if request.bars is not None:
        candles = candles_from_bars(request.bars)
    elif request.klines is not None:
        candles = candles_from_klines(request.klines)
    else:
        raise ValueError("Request must include either 'bars' or 'klines'")
    return trim_candles(candles, get_settings().max_bars)


@router.post("/support-resistance", response_model=SupportResistanceResponse)
async def support_resistance(request: AnalysisRequest):
    """Detect the strongest horizontal support/resistance levels."""
    try:
        candles = _load_candles(request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        levels = detect_support_resistance(candles)
        logger.info(f"{request.ticker}: {len(levels)} support/resistance levels from {len(candles)} candles")
        return SupportResistanceResponse(ticker=request.ticker, levels=levels)
    except Exception as e:
        logger.error(f"Support/resistance error for {request.ticker}: {e}")
        return SupportResistanceResponse(ticker=request.ticker, levels=[], error=str(e))


@router.post("/patterns", response_model=PatternDetectionResponse)
async def patterns(request: AnalysisRequest):
    """Detect chart patterns in the trailing candles."""
    try:
        candles = _load_candles(request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        detected = detect_patterns(candles)
        logger.info(f"{request.ticker}: {len(detected)} patterns from {len(candles)} candles")
        return PatternDetectionResponse(
            ticker=request.ticker,
            detected_patterns=detected,
            patterns_scanned=len(PatternType),
        )
    except Exception as e:
        logger.error(f"Pattern detection error for {request.ticker}: {e}")
        return PatternDetectionResponse(
            ticker=request.ticker, detected_patterns=[], patterns_scanned=0, error=str(e),
        )


@router.post("/snapshot", response_model=SnapshotResponse)
async def snapshot(request: AnalysisRequest):
    """Latest-bar indicator snapshot."""
    try:
        candles = _load_candles(request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        return SnapshotResponse(ticker=request.ticker, snapshot=IndicatorEngine.snapshot(candles))
    except Exception as e:
        logger.error(f"Indicator snapshot error for {request.ticker}: {e}")
        return SnapshotResponse(ticker=request.ticker, error=str(e))


@router.post("/full-analysis", response_model=FullTechnicalResponse)
async def full_technical_analysis(request: AnalysisRequest):
    """Run levels, patterns and the indicator snapshot in one call."""
    try:
        candles = _load_candles(request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        levels = detect_support_resistance(candles)
        detected = detect_patterns(candles)
        indicators = IndicatorEngine.snapshot(candles)

        logger.info(f"{request.ticker}: {len(levels)} levels, {len(detected)} patterns from {len(candles)} candles")
        return FullTechnicalResponse(
            ticker=request.ticker,
            levels=levels,
            detected_patterns=detected,
            snapshot=indicators,
        )
    except Exception as e:
        logger.error(f"Full technical analysis error for {request.ticker}: {e}")
        return FullTechnicalResponse(
            ticker=request.ticker, levels=[], detected_patterns=[], error=str(e),
        )
