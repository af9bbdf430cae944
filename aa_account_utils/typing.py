from typing import NewType

Address = NewType('Address', str)
