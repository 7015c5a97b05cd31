from .service import build_generation_config, find_optimal_locations, parse_coordinate_text

__all__ = ["build_generation_config", "find_optimal_locations", "parse_coordinate_text"]
