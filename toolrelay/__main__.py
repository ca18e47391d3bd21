# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

from .cli import main

main()
