import json

from doccontext.config.settings import Settings, settings


class ConfigAdapter:
	"""Dotted-key access (``config.get("retrieval.semantic_weight")``) over Pydantic settings."""

	def __init__(self, settings_obj: Settings):
		self._settings = settings_obj
		self._overrides = {}  # keys not represented in Settings

	def get(self, key: str, default=None):
		if key in self._overrides:
			return self._overrides.get(key, default)

		current = self._settings
		for part in key.split('.'):
			if hasattr(current, part):
				current = getattr(current, part)
			elif isinstance(current, dict) and part in current:
				current = current[part]
			else:
				return default
		return current

	def set(self, key: str, value):
		parts = key.split('.')
		target = self._settings
		for part in parts[:-1]:
			if hasattr(target, part):
				target = getattr(target, part)
			elif isinstance(target, dict):
				target = target.setdefault(part, {})
			else:
				self._overrides[key] = value
				return

		leaf = parts[-1]
		if isinstance(target, dict):
			target[leaf] = value
		elif hasattr(target, leaf):
			setattr(target, leaf, value)
		else:
			self._overrides[key] = value

	@property
	def all(self):
		combined = json.loads(self._settings.model_dump_json())
		combined.update(self._overrides)
		return combined


config = ConfigAdapter(settings)

__all__ = ["Settings", "settings", "config", "ConfigAdapter"]
