from .survey_config import SurveyConfig, config_from_dict, load_survey_config

__all__ = ["SurveyConfig", "config_from_dict", "load_survey_config"]
