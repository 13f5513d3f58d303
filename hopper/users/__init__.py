"""Empty package: it provides no modules."""