# -*- coding: UTF-8 -*-
